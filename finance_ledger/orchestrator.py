"""
Main Orchestrator for the Finance Grid

This module ties together the ledger store, the snapshot cache, the
category tree, the aggregation engine, reconciliation and the clipboard,
and exposes the operations the grid UI calls.

Flows:
1. Load (cache paint -> remote fetch -> rebuild -> cache write)
2. Cell edit (target total -> one offsetting entry, optimistic display)
3. Copy / paste (cell entry set -> new entries in another cell)
4. Category structure (add / rename / delete with an explicit policy)

DESIGN DECISION: The orchestrator owns the only mutable view of the grid.
- Displayed values are rebuilt from entries, never edited in place except
  for the optimistic value of a pending write, which is rolled back if
  the write fails
- A load that has been superseded by another load is discarded, not applied
- Cache failures never escape; remote write failures always do
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import NoReturn, Optional, Union
from uuid import UUID

import structlog

from finance_ledger.audit import AuditLogger, create_correlation_id
from finance_ledger.config import CategoryDeletePolicy, LedgerSettings, get_settings
from finance_ledger.ledger.aggregation import (
    CyclicCategoryGraph,
    balance,
    compute_rollups,
    monthly_totals,
)
from finance_ledger.ledger.clipboard import ClipboardSession, build_paste_entries
from finance_ledger.ledger.reconciliation import (
    build_adjustment_entry,
    current_total,
    next_position,
    plan_adjustment,
)
from finance_ledger.ledger.tree import (
    CategoryTree,
    direct_values_from_entries,
    display_rows,
    entry_counts_from_entries,
)
from finance_ledger.models.audit import AuditEvent, AuditEventBuilder
from finance_ledger.models.ledger import (
    CacheSnapshot,
    Category,
    CategorySnapshot,
    CellAddress,
    Entry,
    EntryPatch,
    MoneyType,
    ValidationIssue,
    normalize_months,
    zero_months,
)
from finance_ledger.services.cache import FinanceCache, JsonFileKeyValueStore
from finance_ledger.services.storage import (
    FinanceStoreInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFinanceStore,
    InMemoryFinanceStore,
    NotFoundError,
    RemoteWriteFailed,
    StorageError,
)
from finance_ledger.validation import CategoryValidator, InvalidCategoryChange


logger = structlog.get_logger(__name__)

Amount = Union[Decimal, int, str]


class CancellationToken:
    """Marks an in-flight load as superseded."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class DeleteResult:
    """What a category deletion removed or moved."""
    policy: CategoryDeletePolicy
    deleted_ids: list[str] = field(default_factory=list)
    reparented_ids: list[str] = field(default_factory=list)


def _to_decimal(value: Amount) -> Decimal:
    amount = Decimal(str(value))
    if not amount.is_finite():
        raise ValueError(f"Amount must be a finite number, got {value!r}")
    return amount


class FinanceGrid:
    """
    Presentation-facing facade over one user's yearly finance grid.

    Read operations are synchronous and work off the current view.
    Everything that talks to the ledger store is async.
    """

    def __init__(
        self,
        store: FinanceStoreInterface,
        cache: FinanceCache,
        user_id: str,
        clipboard: Optional[ClipboardSession] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
        validator: Optional[CategoryValidator] = None,
    ):
        self._store = store
        self._cache = cache
        self._user_id = user_id
        self._clipboard = clipboard or ClipboardSession()
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().ledger
        self._validator = validator or CategoryValidator()

        self._year: Optional[int] = None
        self._source: Optional[str] = None  # "cache" or "remote"
        self._categories: dict[str, Category] = {}
        self._direct: dict[str, list[Decimal]] = {}
        # Unknown (None) while the view is painted from the cache
        self._entry_counts: Optional[dict[tuple[str, int], int]] = None
        self._trees: dict[MoneyType, CategoryTree] = {}
        self._rollups: dict[str, list[Decimal]] = {}
        self._load_token: Optional[CancellationToken] = None

        self.cycles: list[list[str]] = []
        self.diagnostics: list[ValidationIssue] = []

    # -------------------------------------------------------------------------
    # View state
    # -------------------------------------------------------------------------

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def year(self) -> Optional[int]:
        return self._year

    @property
    def source(self) -> Optional[str]:
        """Where the current view came from: 'cache', 'remote' or None."""
        return self._source

    @property
    def clipboard(self) -> ClipboardSession:
        return self._clipboard

    async def _audit(self, event: AuditEvent) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)

    def _install(
        self,
        year: int,
        categories: list[Category],
        direct: dict[str, list[Decimal]],
        entry_counts: Optional[dict[tuple[str, int], int]],
        source: Optional[str],
    ) -> None:
        self._year = year
        self._source = source
        self._categories = {c.id: c for c in categories}
        self._direct = {c.id: normalize_months(direct.get(c.id)) for c in categories}
        self._entry_counts = entry_counts
        self._rebuild()

    def _rebuild(self) -> None:
        """Recompute trees and rollups from the current categories and values."""
        self._trees = {}
        self._rollups = {}
        self.cycles = []
        for money_type in MoneyType:
            tree = CategoryTree.build(
                c for c in self._categories.values() if c.type == money_type
            )
            self._trees[money_type] = tree
            try:
                rollups = compute_rollups(tree, self._direct)
            except CyclicCategoryGraph as e:
                logger.error(
                    "finance_cyclic_categories",
                    user_id=self._user_id,
                    money_type=money_type.value,
                    cycles=e.cycles,
                )
                self.cycles.extend(e.cycles)
                rollups = compute_rollups(tree, self._direct, skip=e.category_ids)
            self._rollups.update(rollups)

    def _tree_for(self, category_id: str) -> Optional[CategoryTree]:
        category = self._categories.get(category_id)
        if category is None:
            return None
        return self._trees.get(category.type)

    def _in_view(self, address: CellAddress) -> bool:
        return address.year == self._year and address.category_id in self._categories

    def _cell_value(self, address: CellAddress) -> Decimal:
        return self._direct[address.category_id][address.month]

    def _set_cell(
        self,
        address: CellAddress,
        value: Decimal,
        entry_count: Optional[int] = None,
    ) -> Optional[Decimal]:
        """
        Set a cell's displayed direct value and refresh rollups.

        Returns:
            The previous value, or None when the cell isn't in the view
        """
        if not self._in_view(address):
            return None
        previous = self._cell_value(address)
        self._direct[address.category_id][address.month] = value
        if entry_count is not None and self._entry_counts is not None:
            self._entry_counts[(address.category_id, address.month)] = entry_count
        self._rebuild()
        return previous

    def _rollback_cell(self, address: CellAddress, previous: Optional[Decimal]) -> None:
        if previous is not None and self._in_view(address):
            self._direct[address.category_id][address.month] = previous
            self._rebuild()

    def _apply_cell_entries(self, address: CellAddress, entries: list[Entry]) -> None:
        self._set_cell(address, current_total(entries), entry_count=len(entries))

    def snapshot(self) -> CacheSnapshot:
        """The current view as a cache snapshot."""
        rows = {money_type: [] for money_type in MoneyType}
        for category in self._categories.values():
            rows[category.type].append(CategorySnapshot(
                id=category.id,
                name=category.name,
                type=category.type,
                parent_id=category.parent_id,
                values=list(self._direct[category.id]),
            ))
        return CacheSnapshot(income=rows[MoneyType.INCOME], expense=rows[MoneyType.EXPENSE])

    def _write_through(self) -> None:
        # A cache-painted view may be stale itself; only remote views are written
        if self._source == "remote" and self._year is not None:
            self._cache.write(self._user_id, self._year, self.snapshot())

    def _invalidate_cache(self) -> None:
        if self._year is not None:
            self._cache.clear(self._user_id, self._year)

    # -------------------------------------------------------------------------
    # Loading (stale-while-revalidate)
    # -------------------------------------------------------------------------

    def paint_from_cache(self, year: int) -> bool:
        """
        Show the cached snapshot for `year`, if there is one.

        Returns:
            True on a cache hit. On a miss the view is emptied for `year`.
        """
        snapshot = self._cache.read(self._user_id, year)
        if snapshot is None:
            self._install(year, [], {}, None, source=None)
            return False
        self._install(
            year,
            [row.to_category() for row in snapshot.categories()],
            {row.id: row.values for row in snapshot.categories()},
            None,
            source="cache",
        )
        return True

    async def refresh(self, year: int, token: Optional[CancellationToken] = None) -> bool:
        """
        Fetch `year` from the store and rebuild the view.

        Returns:
            True if the result was applied, False if `token` was cancelled
            while the fetch was in flight

        Raises:
            StorageError: If the store can't be read
        """
        categories = await self._store.list_categories(self._user_id)
        if token is not None and token.cancelled:
            await self._audit(AuditEventBuilder.load_discarded(self._user_id, year))
            return False
        entries = await self._store.list_entries_for_year(self._user_id, year)
        if token is not None and token.cancelled:
            await self._audit(AuditEventBuilder.load_discarded(self._user_id, year))
            return False

        self._install(
            year,
            categories,
            direct_values_from_entries(entries),
            entry_counts_from_entries(entries),
            source="remote",
        )
        self.diagnostics = self._validator.validate(categories).issues
        self._cache.write(self._user_id, year, self.snapshot())

        if self.cycles:
            await self._audit(AuditEventBuilder.cyclic_category_graph(self._user_id, self.cycles))
        await self._audit(AuditEventBuilder.ledger_loaded(
            self._user_id, year, len(categories), len(entries)
        ))
        return True

    async def load(self, year: int) -> bool:
        """
        Paint from cache, then revalidate against the store.

        Starting a load cancels any load still in flight.

        Returns:
            True if the remote result was applied
        """
        if self._load_token is not None:
            self._load_token.cancel()
        token = self._load_token = CancellationToken()
        self.paint_from_cache(year)
        return await self.refresh(year, token)

    # -------------------------------------------------------------------------
    # Read contract
    # -------------------------------------------------------------------------

    def categories(self, money_type: Optional[MoneyType] = None) -> list[Category]:
        return [
            c for c in self._categories.values()
            if money_type is None or c.type == money_type
        ]

    def get_direct_values(self, category_id: str) -> list[Decimal]:
        """Twelve monthly sums of the category's own included entries."""
        values = self._direct.get(category_id)
        return list(values) if values is not None else zero_months()

    def get_rollup(self, category_id: str) -> Optional[list[Decimal]]:
        """Twelve monthly descendant sums, or None for leaves."""
        values = self._rollups.get(category_id)
        return list(values) if values is not None else None

    def get_display_values(self, category_id: str) -> list[Decimal]:
        """
        What the grid shows on a category row.

        Leaves show their direct values. Parents show their rollup, plus
        their own direct values when `include_parent_direct` is set.
        """
        rollup = self._rollups.get(category_id)
        if rollup is None:
            return self.get_direct_values(category_id)
        if not self._settings.include_parent_direct:
            return list(rollup)
        direct = self.get_direct_values(category_id)
        return [rollup[m] + direct[m] for m in range(len(rollup))]

    def monthly_totals(self, money_type: MoneyType) -> list[Decimal]:
        return monthly_totals(
            (c.id for c in self.categories(money_type)), self._direct
        )

    def balance(self) -> list[Decimal]:
        return balance(
            self.monthly_totals(MoneyType.INCOME),
            self.monthly_totals(MoneyType.EXPENSE),
        )

    def rows(self, money_type: MoneyType, collapsed=()) -> list[tuple[Category, int]]:
        """(category, depth) pairs in display order."""
        tree = self._trees.get(money_type)
        if tree is None:
            return []
        return list(display_rows(tree, collapsed))

    # -------------------------------------------------------------------------
    # Cell reconciliation
    # -------------------------------------------------------------------------

    async def reconcile_cell(
        self,
        category_id: str,
        month: int,
        year: int,
        new_total: Amount,
    ) -> Optional[Entry]:
        """
        Set a cell's total by appending one offsetting entry.

        The displayed value changes to `new_total` before the write is
        confirmed and is restored if the write fails.

        Returns:
            The new entry, or None when the cell already had that total

        Raises:
            RemoteWriteFailed: If the store rejects the entry
        """
        address = CellAddress(category_id=category_id, month=month, year=year)
        target = _to_decimal(new_total)
        entries = await self._store.list_entries(category_id, month, year)
        adjustment = plan_adjustment(
            entries,
            target,
            inflow_note=self._settings.inflow_note,
            outflow_note=self._settings.outflow_note,
        )
        if adjustment is None:
            return None

        entry = build_adjustment_entry(adjustment, address, entries, self._user_id)
        correlation_id = create_correlation_id()
        previous = self._set_cell(address, target)
        try:
            stored = await self._store.insert_entry(entry)
        except StorageError as e:
            await self._fail_write(address, previous, "insert_entry", e, correlation_id)

        self._set_cell(address, target, entry_count=len(entries) + 1)
        self._write_through()
        await self._audit(AuditEventBuilder.cell_reconciled(
            self._user_id, category_id, month, year,
            adjustment.previous_total, adjustment.new_total,
            correlation_id=correlation_id,
        ))
        await self._audit(AuditEventBuilder.entry_created(
            self._user_id, stored.id, category_id, month, year, stored.amount,
            correlation_id=correlation_id,
        ))
        return stored

    async def _fail_write(
        self,
        address: Optional[CellAddress],
        previous: Optional[Decimal],
        operation: str,
        error: StorageError,
        correlation_id: Optional[UUID] = None,
    ) -> NoReturn:
        """
        Roll back the optimistic value, record the failure and raise.

        Store errors are raised as RemoteWriteFailed; NotFoundError is
        re-raised unchanged.
        """
        if address is not None:
            self._rollback_cell(address, previous)
        logger.error(
            "finance_remote_write_failed",
            user_id=self._user_id,
            operation=operation,
            error=str(error),
        )
        details = address.model_dump() if address is not None else None
        await self._audit(AuditEventBuilder.remote_write_failed(
            self._user_id, operation, str(error), details, correlation_id
        ))
        if isinstance(error, (RemoteWriteFailed, NotFoundError)):
            raise error
        raise RemoteWriteFailed(operation, str(error)) from error

    # -------------------------------------------------------------------------
    # Clipboard
    # -------------------------------------------------------------------------

    def has_clipboard(self) -> bool:
        return self._clipboard.has_clipboard

    def can_copy(self, category_id: str, month: int, year: int) -> bool:
        """
        Whether the cell has entries to copy.

        Uses entry counts from the last remote load; while painted from the
        cache only values are known, so a non-zero value stands in.
        """
        address = CellAddress(category_id=category_id, month=month, year=year)
        if not self._in_view(address):
            return False
        if self._entry_counts is not None:
            return self._entry_counts.get((category_id, month), 0) > 0
        return self._cell_value(address) != 0

    async def copy_cell(self, category_id: str, month: int, year: int) -> int:
        """
        Copy a cell's entries to the clipboard.

        Returns:
            Number of entries copied

        Raises:
            EmptySourceCopy: If the cell has no entries
        """
        address = CellAddress(category_id=category_id, month=month, year=year)
        entries = await self._store.list_entries(category_id, month, year)
        count = self._clipboard.copy(entries, source=address)
        await self._audit(AuditEventBuilder.cell_copied(
            self._user_id, category_id, month, year, count
        ))
        return count

    async def paste_cell(self, category_id: str, month: int, year: int) -> list[Entry]:
        """
        Append the clipboard's entries to a cell.

        Existing entries in the destination are kept; the source is not touched.

        Returns:
            The new entries

        Raises:
            EmptyClipboardPaste: If nothing has been copied
            RemoteWriteFailed: If the store rejects the entries
        """
        address = CellAddress(category_id=category_id, month=month, year=year)
        # Snapshot the buffer before any await so a concurrent copy can't interleave
        records = self._clipboard.records()
        existing = await self._store.list_entries(category_id, month, year)
        new_entries = build_paste_entries(records, address, existing, self._user_id)
        target = current_total([*existing, *new_entries])

        correlation_id = create_correlation_id()
        previous = self._set_cell(address, target)
        try:
            stored = await self._store.insert_entries(new_entries)
        except StorageError as e:
            await self._fail_write(address, previous, "insert_entries", e, correlation_id)

        self._set_cell(address, target, entry_count=len(existing) + len(stored))
        self._write_through()
        await self._audit(AuditEventBuilder.cell_pasted(
            self._user_id, category_id, month, year,
            [entry.id for entry in stored],
            correlation_id=correlation_id,
        ))
        return stored

    # -------------------------------------------------------------------------
    # Entry editing
    # -------------------------------------------------------------------------

    async def list_cell_entries(self, category_id: str, month: int, year: int) -> list[Entry]:
        return await self._store.list_entries(category_id, month, year)

    async def _resync_cell(self, address: CellAddress) -> list[Entry]:
        entries = await self._store.list_entries(address.category_id, address.month, address.year)
        self._apply_cell_entries(address, entries)
        self._write_through()
        return entries

    async def _resync_after_failure(self, address: CellAddress) -> None:
        """Re-read a cell whose multi-step write failed part-way."""
        try:
            await self._resync_cell(address)
        except StorageError as e:
            logger.warning(
                "finance_cell_resync_failed",
                user_id=self._user_id,
                cell=address.model_dump(),
                error=str(e),
            )

    async def add_entry(
        self,
        category_id: str,
        month: int,
        year: int,
        amount: Amount,
        note: Optional[str] = None,
        included: bool = True,
    ) -> Entry:
        """Append an entry to the end of a cell."""
        address = CellAddress(category_id=category_id, month=month, year=year)
        existing = await self._store.list_entries(category_id, month, year)
        entry = Entry(
            user_id=self._user_id,
            category_id=category_id,
            year=year,
            month=month,
            amount=_to_decimal(amount),
            note=note,
            included=included,
            position=next_position(existing),
        )
        try:
            stored = await self._store.insert_entry(entry)
        except StorageError as e:
            await self._fail_write(address, None, "insert_entry", e)

        self._apply_cell_entries(address, [*existing, stored])
        self._write_through()
        await self._audit(AuditEventBuilder.entry_created(
            self._user_id, stored.id, category_id, month, year, stored.amount
        ))
        return stored

    async def update_entry(self, entry_id: str, patch: EntryPatch) -> Entry:
        """Change an entry's amount, note, included flag or position."""
        try:
            updated = await self._store.update_entry(entry_id, patch)
        except StorageError as e:
            await self._fail_write(None, None, "update_entry", e)
        await self._resync_cell(updated.address)
        await self._audit(AuditEventBuilder.entry_updated(
            self._user_id, entry_id, patch.changes()
        ))
        return updated

    async def delete_entry(self, entry: Entry) -> list[Entry]:
        """
        Delete an entry and close the gap in its cell's positions.

        Returns:
            The cell's remaining entries
        """
        address = entry.address
        try:
            await self._store.delete_entry(entry.id)
            remaining = await self._store.list_entries(address.category_id, address.month, address.year)
            remaining = await self._renumber(remaining)
        except StorageError as e:
            # The delete may have landed before the failure
            await self._resync_after_failure(address)
            await self._fail_write(None, None, "delete_entry", e)

        self._apply_cell_entries(address, remaining)
        self._write_through()
        await self._audit(AuditEventBuilder.entry_deleted(self._user_id, entry.id))
        return remaining

    async def move_entry(self, entry: Entry, new_index: int) -> list[Entry]:
        """
        Move an entry to another slot in its cell.

        Returns:
            The cell's entries in their new order
        """
        address = entry.address
        entries = await self._store.list_entries(address.category_id, address.month, address.year)
        ordered = [e for e in entries if e.id != entry.id]
        if len(ordered) == len(entries):
            raise ValueError(f"Entry {entry.id} is not in its cell any more")
        new_index = max(0, min(new_index, len(ordered)))
        ordered.insert(new_index, next(e for e in entries if e.id == entry.id))
        try:
            ordered = await self._renumber(ordered)
        except StorageError as e:
            await self._fail_write(None, None, "update_entry", e)

        await self._audit(AuditEventBuilder.entries_reordered(
            self._user_id, address.category_id, address.month, address.year,
            [e.id for e in ordered],
        ))
        return ordered

    async def _renumber(self, entries: list[Entry]) -> list[Entry]:
        """Make positions 0..n-1 in list order, writing only the ones that change."""
        out = []
        for index, entry in enumerate(entries):
            if entry.position != index:
                entry = await self._store.update_entry(entry.id, EntryPatch(position=index))
            out.append(entry)
        return out

    # -------------------------------------------------------------------------
    # Category structure
    # -------------------------------------------------------------------------

    async def add_category(
        self,
        name: str,
        money_type: MoneyType,
        parent_id: Optional[str] = None,
    ) -> Category:
        """
        Create a category, optionally under a parent of the same type.

        Raises:
            InvalidCategoryChange: If the parent is unknown or of the other type
            RemoteWriteFailed: If the store rejects the category
        """
        tree = CategoryTree.build(self._categories.values())
        issues = self._validator.check_new_category(tree, money_type, parent_id)
        if issues:
            raise InvalidCategoryChange(issues)

        category = Category(
            user_id=self._user_id,
            name=name,
            type=money_type,
            parent_id=parent_id,
        )
        try:
            stored = await self._store.insert_category(category)
        except StorageError as e:
            await self._fail_write(None, None, "insert_category", e)

        self._categories[stored.id] = stored
        self._direct[stored.id] = zero_months()
        self._rebuild()
        self._invalidate_cache()
        await self._audit(AuditEventBuilder.category_created(
            self._user_id, stored.id, stored.name, stored.type.value, stored.parent_id
        ))
        return stored

    async def rename_category(self, category_id: str, name: str) -> Category:
        """
        Rename a category.

        Raises:
            NotFoundError: If the category doesn't exist
            RemoteWriteFailed: If the store rejects the change
        """
        old = self._categories.get(category_id)
        try:
            renamed = await self._store.rename_category(category_id, name)
        except StorageError as e:
            await self._fail_write(None, None, "rename_category", e)

        if category_id in self._categories:
            self._categories[category_id] = renamed
            self._rebuild()
        self._invalidate_cache()
        await self._audit(AuditEventBuilder.category_renamed(
            self._user_id, category_id, old.name if old else "", renamed.name
        ))
        return renamed

    async def delete_category(
        self,
        category_id: str,
        policy: Optional[CategoryDeletePolicy] = None,
    ) -> DeleteResult:
        """
        Delete a category and its entries.

        CASCADE removes the whole subtree, deepest categories first.
        REPARENT moves the children to the deleted category's parent.

        Raises:
            RemoteWriteFailed: If the store rejects a step; steps already
                done stay done and the view reflects them
        """
        policy = policy or self._settings.delete_policy
        result = DeleteResult(policy=policy)
        tree = self._tree_for(category_id) or CategoryTree.build([])

        try:
            if policy == CategoryDeletePolicy.CASCADE:
                for doomed in reversed(tree.descendants(category_id)):
                    await self._store.delete_category(doomed)
                    self._forget_category(doomed)
                    result.deleted_ids.append(doomed)
            else:
                new_parent = tree.parent_of(category_id)
                for child_id in tree.children_of(category_id):
                    moved = await self._store.reparent_category(child_id, new_parent)
                    self._categories[child_id] = moved
                    result.reparented_ids.append(child_id)

            await self._store.delete_category(category_id)
            self._forget_category(category_id)
            result.deleted_ids.append(category_id)
        except StorageError as e:
            self._rebuild()
            self._invalidate_cache()
            await self._fail_write(None, None, "delete_category", e)

        self._rebuild()
        self._invalidate_cache()
        await self._audit(AuditEventBuilder.category_deleted(
            self._user_id, category_id, policy.value,
            result.deleted_ids, result.reparented_ids,
        ))
        return result

    def _forget_category(self, category_id: str) -> None:
        self._categories.pop(category_id, None)
        self._direct.pop(category_id, None)
        if self._entry_counts is not None:
            self._entry_counts = {
                key: count for key, count in self._entry_counts.items()
                if key[0] != category_id
            }


def create_app_components(
    use_storage: bool = True,
    user_id: Optional[str] = None,
) -> FinanceGrid:
    """
    Factory function to create a fully wired grid.

    Args:
        use_storage: Whether to use Google Sheets as the ledger store.
                    Set to False to run against an in-memory store.
        user_id: The user to run as; defaults to the configured user
    """
    settings = get_settings()
    cache_settings = settings.cache
    cache = FinanceCache(
        JsonFileKeyValueStore(cache_settings.path, max_bytes=cache_settings.max_bytes),
        schema_version=cache_settings.schema_version,
        prefix=cache_settings.key_prefix,
    )

    store: FinanceStoreInterface
    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            store = GoogleSheetsFinanceStore(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("finance_storage_not_configured", error=str(e))
            store = InMemoryFinanceStore()
            audit_logger = AuditLogger()  # Local-only logging
    else:
        store = InMemoryFinanceStore()
        audit_logger = AuditLogger()

    return FinanceGrid(
        store=store,
        cache=cache,
        user_id=user_id or settings.app.default_user_id,
        clipboard=ClipboardSession(),
        audit_logger=audit_logger,
        settings=settings.ledger,
    )
