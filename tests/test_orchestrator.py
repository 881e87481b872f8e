"""
Integration tests for the finance grid.

Flows run against the in-memory ledger store and an in-memory cache.
Async operations are driven with asyncio.run.
"""

import asyncio
from decimal import Decimal

import pytest

from conftest import USER, YEAR, make_category, make_entry

from finance_ledger.audit import AuditLogger
from finance_ledger.config import CategoryDeletePolicy, LedgerSettings, get_settings
from finance_ledger.ledger.clipboard import ClipboardSession, EmptyClipboardPaste, EmptySourceCopy
from finance_ledger.models.audit import AuditEventType
from finance_ledger.models.ledger import EntryPatch, MoneyType
from finance_ledger.orchestrator import CancellationToken, FinanceGrid, create_app_components
from finance_ledger.services.storage import (
    AuditStorageInterface,
    InMemoryFinanceStore,
    NotFoundError,
    RemoteWriteFailed,
    StorageError,
)
from finance_ledger.validation import InvalidCategoryChange


class ObservingStore(InMemoryFinanceStore):
    """Records what the grid displays while an insert is in flight."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.grid = None
        self.seen = []

    async def insert_entry(self, entry):
        self.seen.append(self.grid.get_direct_values(entry.category_id)[entry.month])
        return await super().insert_entry(entry)

    async def insert_entries(self, entries):
        first = entries[0]
        self.seen.append(self.grid.get_direct_values(first.category_id)[first.month])
        return await super().insert_entries(entries)


class GatedStore(InMemoryFinanceStore):
    """The first category fetch blocks until `gate` is set."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.gate = None
        self._calls = 0

    async def list_categories(self, user_id):
        self._calls += 1
        if self._calls == 1:
            await self.gate.wait()
        return await super().list_categories(user_id)


class FlakyReadStore(InMemoryFinanceStore):
    """Cell reads fail with a plain StorageError once `broken` is set."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.broken = False

    async def list_entries(self, category_id, month, year):
        if self.broken:
            raise StorageError("read timed out")
        return await super().list_entries(category_id, month, year)


class RecordingAuditStorage(AuditStorageInterface):
    def __init__(self):
        self.events = []

    async def append_event(self, event):
        self.events.append(event)
        return True

    async def get_recent_events(self, limit=100):
        return list(reversed(self.events))[:limit]


def _observing_grid(salary_categories, cache, settings):
    store = ObservingStore(
        categories=salary_categories,
        entries=[make_entry("2", 0, 100, id="bonus-jan")],
    )
    grid = FinanceGrid(store=store, cache=cache, user_id=USER, settings=settings)
    store.grid = grid
    return store, grid


class TestLoading:
    """Tests for stale-while-revalidate loading."""

    def test_load_builds_view(self, grid):
        assert asyncio.run(grid.load(YEAR))

        assert grid.source == "remote"
        assert grid.get_direct_values("2")[0] == Decimal(100)
        assert grid.get_rollup("1")[0] == Decimal(100)
        assert grid.get_rollup("2") is None
        assert grid.get_direct_values("3")[0] == Decimal(40)

    def test_load_writes_cache(self, grid, cache):
        asyncio.run(grid.load(YEAR))
        snapshot = cache.read(USER, YEAR)
        assert {c.id for c in snapshot.income} == {"1", "2"}
        assert {c.id for c in snapshot.expense} == {"3"}

    def test_paint_from_cache(self, grid, store, cache, ledger_settings):
        asyncio.run(grid.load(YEAR))
        fresh = FinanceGrid(store=store, cache=cache, user_id=USER, settings=ledger_settings)
        reads_before = store.read_count

        assert fresh.paint_from_cache(YEAR)

        assert store.read_count == reads_before
        assert fresh.source == "cache"
        assert fresh.get_display_values("1")[0] == Decimal(100)

    def test_paint_miss_empties_view(self, grid):
        assert not grid.paint_from_cache(YEAR)
        assert grid.year == YEAR
        assert grid.categories() == []

    def test_cancelled_refresh_is_discarded(self, grid):
        token = CancellationToken()
        token.cancel()

        assert not asyncio.run(grid.refresh(YEAR, token))
        assert grid.source is None

    def test_superseded_load_is_discarded(self, salary_categories, cache, ledger_settings):
        store = GatedStore(
            categories=salary_categories,
            entries=[make_entry("2", 0, 100), make_entry("2", 0, 7, year=2023)],
        )
        grid = FinanceGrid(store=store, cache=cache, user_id=USER, settings=ledger_settings)

        async def navigate():
            store.gate = asyncio.Event()
            first = asyncio.create_task(grid.load(2024))
            await asyncio.sleep(0)
            second = await grid.load(2023)
            store.gate.set()
            return await first, second

        first, second = asyncio.run(navigate())

        assert (first, second) == (False, True)
        assert grid.year == 2023
        assert grid.get_direct_values("2")[0] == Decimal(7)
        assert cache.read(USER, 2024) is None

    def test_totals_and_balance(self, grid):
        asyncio.run(grid.load(YEAR))
        assert grid.monthly_totals(MoneyType.INCOME)[0] == Decimal(100)
        assert grid.monthly_totals(MoneyType.EXPENSE)[0] == Decimal(40)
        assert grid.balance()[0] == Decimal(60)
        assert grid.balance()[1] == Decimal(0)

    def test_rows(self, grid):
        asyncio.run(grid.load(YEAR))
        assert [(c.id, d) for c, d in grid.rows(MoneyType.INCOME)] == [("1", 0), ("2", 1)]
        assert [c.id for c, _ in grid.rows(MoneyType.INCOME, collapsed={"1"})] == ["1"]

    def test_cycle_does_not_break_load(self, cache, ledger_settings):
        store = InMemoryFinanceStore(
            categories=[
                make_category("1", "Salary"),
                make_category("2", "Bonus", parent_id="1", order=1),
                make_category("x", "X", parent_id="y", order=2),
                make_category("y", "Y", parent_id="x", order=3),
            ],
            entries=[make_entry("2", 0, 100)],
        )
        grid = FinanceGrid(store=store, cache=cache, user_id=USER, settings=ledger_settings)

        assert asyncio.run(grid.load(YEAR))

        assert grid.get_rollup("1")[0] == Decimal(100)
        assert grid.get_rollup("x") is None
        assert len(grid.cycles) == 1
        assert any(issue.issue_type == "cycle" for issue in grid.diagnostics)


class TestDisplayValues:
    """Tests for what parent rows show."""

    def test_parent_direct_excluded_by_default(self, salary_categories, cache, ledger_settings):
        store = InMemoryFinanceStore(
            categories=salary_categories,
            entries=[make_entry("1", 0, 1000), make_entry("2", 0, 100)],
        )
        grid = FinanceGrid(store=store, cache=cache, user_id=USER, settings=ledger_settings)
        asyncio.run(grid.load(YEAR))

        assert grid.get_display_values("1")[0] == Decimal(100)
        assert grid.monthly_totals(MoneyType.INCOME)[0] == Decimal(1100)

    def test_parent_direct_included_when_configured(self, salary_categories, cache):
        store = InMemoryFinanceStore(
            categories=salary_categories,
            entries=[make_entry("1", 0, 1000), make_entry("2", 0, 100)],
        )
        grid = FinanceGrid(
            store=store, cache=cache, user_id=USER,
            settings=LedgerSettings(include_parent_direct=True),
        )
        asyncio.run(grid.load(YEAR))

        assert grid.get_display_values("1")[0] == Decimal(1100)
        assert grid.get_display_values("2")[0] == Decimal(100)


class TestReconcileCell:
    """Tests for setting a cell's total."""

    def test_salary_bonus_edit(self, grid, store):
        asyncio.run(grid.load(YEAR))

        entry = asyncio.run(grid.reconcile_cell("2", 0, YEAR, Decimal(150)))

        assert entry.amount == Decimal(50)
        assert entry.note == "Inflow adjustment"
        assert grid.get_direct_values("2")[0] == Decimal(150)
        assert grid.get_rollup("1")[0] == Decimal(150)
        assert len(asyncio.run(store.list_entries("2", 0, YEAR))) == 2

    def test_same_total_creates_nothing(self, grid, store):
        asyncio.run(grid.load(YEAR))
        assert asyncio.run(grid.reconcile_cell("2", 0, YEAR, "100.00")) is None
        assert len(asyncio.run(store.list_entries("2", 0, YEAR))) == 1

    def test_decrease_creates_outflow(self, grid):
        asyncio.run(grid.load(YEAR))
        entry = asyncio.run(grid.reconcile_cell("2", 0, YEAR, Decimal(20)))
        assert entry.amount == Decimal(-80)
        assert entry.note == "Outflow adjustment"

    def test_value_is_optimistic(self, salary_categories, cache, ledger_settings):
        store, grid = _observing_grid(salary_categories, cache, ledger_settings)
        asyncio.run(grid.load(YEAR))

        asyncio.run(grid.reconcile_cell("2", 0, YEAR, Decimal(150)))

        assert store.seen == [Decimal(150)]

    def test_failed_write_rolls_back(self, salary_categories, cache, ledger_settings):
        store, grid = _observing_grid(salary_categories, cache, ledger_settings)
        asyncio.run(grid.load(YEAR))
        store.fail_operations.add("insert_entry")

        with pytest.raises(RemoteWriteFailed) as exc_info:
            asyncio.run(grid.reconcile_cell("2", 0, YEAR, Decimal(150)))

        assert exc_info.value.operation == "insert_entry"
        assert store.seen == [Decimal(150)]
        assert grid.get_direct_values("2")[0] == Decimal(100)
        assert grid.get_rollup("1")[0] == Decimal(100)
        assert cache.read(USER, YEAR).income[1].values[0] == Decimal(100)

    def test_write_through_updates_cache(self, grid, cache):
        asyncio.run(grid.load(YEAR))
        asyncio.run(grid.reconcile_cell("2", 0, YEAR, Decimal(150)))
        bonus = next(c for c in cache.read(USER, YEAR).income if c.id == "2")
        assert bonus.values[0] == Decimal(150)

    def test_cache_painted_view_is_not_written_through(self, grid, store, cache, ledger_settings):
        asyncio.run(grid.load(YEAR))
        painted = FinanceGrid(store=store, cache=cache, user_id=USER, settings=ledger_settings)
        painted.paint_from_cache(YEAR)

        asyncio.run(painted.reconcile_cell("2", 0, YEAR, Decimal(150)))

        assert painted.get_direct_values("2")[0] == Decimal(150)
        bonus = next(c for c in cache.read(USER, YEAR).income if c.id == "2")
        assert bonus.values[0] == Decimal(100)

    def test_audit_events_share_correlation_id(self, store, cache, ledger_settings):
        audit_storage = RecordingAuditStorage()
        grid = FinanceGrid(
            store=store, cache=cache, user_id=USER,
            audit_logger=AuditLogger(audit_storage), settings=ledger_settings,
        )
        asyncio.run(grid.load(YEAR))

        asyncio.run(grid.reconcile_cell("2", 0, YEAR, Decimal(150)))

        reconciled = [e for e in audit_storage.events if e.event_type == AuditEventType.CELL_RECONCILED]
        created = [e for e in audit_storage.events if e.event_type == AuditEventType.ENTRY_CREATED]
        assert len(reconciled) == 1
        assert reconciled[0].correlation_id == created[0].correlation_id


class TestClipboardFlow:
    """Tests for copy and paste through the grid."""

    def test_can_copy(self, grid):
        asyncio.run(grid.load(YEAR))
        assert grid.can_copy("2", 0, YEAR)
        assert not grid.can_copy("2", 1, YEAR)
        assert not grid.can_copy("2", 0, YEAR + 1)
        assert not grid.can_copy("missing", 0, YEAR)

    def test_can_copy_counts_excluded_entries(self, salary_categories, cache, ledger_settings):
        store = InMemoryFinanceStore(
            categories=salary_categories,
            entries=[make_entry("2", 4, 10, included=False)],
        )
        grid = FinanceGrid(store=store, cache=cache, user_id=USER, settings=ledger_settings)
        asyncio.run(grid.load(YEAR))
        assert grid.get_direct_values("2")[4] == Decimal(0)
        assert grid.can_copy("2", 4, YEAR)

    def test_copy_empty_cell_raises(self, grid):
        asyncio.run(grid.load(YEAR))
        with pytest.raises(EmptySourceCopy):
            asyncio.run(grid.copy_cell("2", 5, YEAR))
        assert not grid.has_clipboard()

    def test_paste_without_copy_raises(self, grid):
        asyncio.run(grid.load(YEAR))
        with pytest.raises(EmptyClipboardPaste):
            asyncio.run(grid.paste_cell("2", 1, YEAR))

    def test_paste_is_additive_and_leaves_source(self, grid, store):
        asyncio.run(grid.load(YEAR))
        asyncio.run(grid.add_entry("2", 0, YEAR, Decimal(5), note="tip"))
        asyncio.run(grid.add_entry("2", 1, YEAR, Decimal(1), note="existing"))
        source_before = asyncio.run(store.list_entries("2", 0, YEAR))
        dest_before = asyncio.run(store.list_entries("2", 1, YEAR))

        assert asyncio.run(grid.copy_cell("2", 0, YEAR)) == 2
        pasted = asyncio.run(grid.paste_cell("2", 1, YEAR))

        source_after = asyncio.run(store.list_entries("2", 0, YEAR))
        dest_after = asyncio.run(store.list_entries("2", 1, YEAR))
        assert source_after == source_before
        assert dest_after[:1] == dest_before
        assert [(e.amount, e.note) for e in dest_after[1:]] == [
            (e.amount, e.note) for e in source_before
        ]
        assert [e.position for e in pasted] == [1, 2]
        assert {e.id for e in pasted}.isdisjoint({e.id for e in source_before})
        assert grid.get_direct_values("2")[1] == Decimal(106)
        assert grid.get_rollup("1")[1] == Decimal(106)

    def test_paste_into_another_category(self, grid, store):
        asyncio.run(grid.load(YEAR))
        asyncio.run(grid.copy_cell("2", 0, YEAR))
        asyncio.run(grid.paste_cell("1", 0, YEAR))
        assert grid.get_direct_values("1")[0] == Decimal(100)

    def test_failed_paste_rolls_back(self, salary_categories, cache, ledger_settings):
        store, grid = _observing_grid(salary_categories, cache, ledger_settings)
        asyncio.run(grid.load(YEAR))
        asyncio.run(grid.copy_cell("2", 0, YEAR))
        store.fail_operations.add("insert_entries")

        with pytest.raises(RemoteWriteFailed):
            asyncio.run(grid.paste_cell("2", 3, YEAR))

        assert store.seen == [Decimal(100)]
        assert grid.get_direct_values("2")[3] == Decimal(0)
        assert asyncio.run(store.list_entries("2", 3, YEAR)) == []
        assert grid.has_clipboard()

    def test_clipboard_survives_year_change(self, grid):
        asyncio.run(grid.load(YEAR))
        asyncio.run(grid.copy_cell("2", 0, YEAR))
        asyncio.run(grid.load(YEAR + 1))
        assert grid.has_clipboard()


class TestEntryEditing:
    """Tests for entry-level edits."""

    def test_update_included_flag(self, grid):
        asyncio.run(grid.load(YEAR))
        asyncio.run(grid.update_entry("bonus-jan", EntryPatch(included=False)))
        assert grid.get_direct_values("2")[0] == Decimal(0)
        assert grid.get_rollup("1")[0] == Decimal(0)
        assert grid.can_copy("2", 0, YEAR)

    def test_delete_entry_compacts_positions(self, grid):
        asyncio.run(grid.load(YEAR))
        middle = asyncio.run(grid.add_entry("3", 0, YEAR, Decimal(10)))
        last = asyncio.run(grid.add_entry("3", 0, YEAR, Decimal(20)))

        remaining = asyncio.run(grid.delete_entry(middle))

        assert [e.id for e in remaining] == ["rent-jan", last.id]
        assert [e.position for e in remaining] == [0, 1]
        assert grid.get_direct_values("3")[0] == Decimal(60)

    def test_move_entry(self, grid, store):
        asyncio.run(grid.load(YEAR))
        second = asyncio.run(grid.add_entry("3", 0, YEAR, Decimal(10)))
        third = asyncio.run(grid.add_entry("3", 0, YEAR, Decimal(20)))

        ordered = asyncio.run(grid.move_entry(third, 0))

        assert [e.id for e in ordered] == [third.id, "rent-jan", second.id]
        stored = asyncio.run(store.list_entries("3", 0, YEAR))
        assert [e.id for e in stored] == [third.id, "rent-jan", second.id]
        assert grid.get_direct_values("3")[0] == Decimal(70)

    def test_delete_that_lands_before_renumber_fails_is_reflected(
        self, salary_categories, cache, ledger_settings
    ):
        store = InMemoryFinanceStore(
            categories=salary_categories,
            entries=[
                make_entry("3", 5, 10, position=0, id="first"),
                make_entry("3", 5, 5, position=1, id="second"),
            ],
        )
        grid = FinanceGrid(store=store, cache=cache, user_id=USER, settings=ledger_settings)
        asyncio.run(grid.load(YEAR))
        first = asyncio.run(store.list_entries("3", 5, YEAR))[0]
        store.fail_operations.add("update_entry")

        with pytest.raises(RemoteWriteFailed):
            asyncio.run(grid.delete_entry(first))

        assert [e.id for e in asyncio.run(store.list_entries("3", 5, YEAR))] == ["second"]
        assert grid.get_direct_values("3")[5] == Decimal(5)

    def test_plain_storage_error_becomes_remote_write_failed(
        self, salary_categories, cache, ledger_settings
    ):
        store = FlakyReadStore(
            categories=salary_categories,
            entries=[make_entry("3", 0, 40, id="rent-jan")],
        )
        audit_storage = RecordingAuditStorage()
        grid = FinanceGrid(
            store=store, cache=cache, user_id=USER,
            audit_logger=AuditLogger(audit_storage), settings=ledger_settings,
        )
        asyncio.run(grid.load(YEAR))
        rent = asyncio.run(store.list_entries("3", 0, YEAR))[0]
        store.broken = True

        with pytest.raises(RemoteWriteFailed) as exc_info:
            asyncio.run(grid.delete_entry(rent))

        assert exc_info.value.operation == "delete_entry"
        failures = [e for e in audit_storage.events if e.event_type == AuditEventType.REMOTE_WRITE_FAILED]
        assert len(failures) == 1

    def test_update_missing_entry_raises_not_found(self, grid):
        asyncio.run(grid.load(YEAR))
        with pytest.raises(NotFoundError):
            asyncio.run(grid.update_entry("missing", EntryPatch(note="x")))


class TestCategoryStructure:
    """Tests for category add / rename / delete."""

    def test_add_child_category(self, grid, cache):
        asyncio.run(grid.load(YEAR))
        tips = asyncio.run(grid.add_category("Tips", MoneyType.INCOME, parent_id="2"))

        assert tips.user_id == USER
        assert grid.get_rollup("2") == [Decimal(0)] * 12
        assert grid.get_rollup("1")[0] == Decimal(100)
        assert cache.read(USER, YEAR) is None

    def test_add_category_under_other_type_is_rejected(self, grid, store):
        asyncio.run(grid.load(YEAR))
        with pytest.raises(InvalidCategoryChange) as exc_info:
            asyncio.run(grid.add_category("Tips", MoneyType.EXPENSE, parent_id="2"))
        assert exc_info.value.issues[0].issue_type == "type_mismatch"
        assert len(asyncio.run(store.list_categories(USER))) == 3

    def test_rename(self, grid):
        asyncio.run(grid.load(YEAR))
        renamed = asyncio.run(grid.rename_category("2", "Annual bonus"))
        assert renamed.name == "Annual bonus"
        assert [c.name for c, _ in grid.rows(MoneyType.INCOME)] == ["Salary", "Annual bonus"]

    def test_delete_cascade(self, grid, store, cache):
        asyncio.run(grid.load(YEAR))

        result = asyncio.run(grid.delete_category("1", CategoryDeletePolicy.CASCADE))

        assert result.deleted_ids == ["2", "1"]
        assert grid.categories(MoneyType.INCOME) == []
        assert asyncio.run(store.list_entries("2", 0, YEAR)) == []
        assert cache.read(USER, YEAR) is None
        assert grid.monthly_totals(MoneyType.INCOME)[0] == Decimal(0)

    def test_delete_reparent(self, grid, store):
        asyncio.run(grid.load(YEAR))
        tips = asyncio.run(grid.add_category("Tips", MoneyType.INCOME, parent_id="2"))
        asyncio.run(grid.reconcile_cell(tips.id, 2, YEAR, Decimal(8)))

        result = asyncio.run(grid.delete_category("2", CategoryDeletePolicy.REPARENT))

        assert result.reparented_ids == [tips.id]
        assert result.deleted_ids == ["2"]
        categories = {c.id: c for c in asyncio.run(store.list_categories(USER))}
        assert categories[tips.id].parent_id == "1"
        assert grid.get_rollup("1")[2] == Decimal(8)
        assert grid.get_rollup("1")[0] == Decimal(0)

    def test_delete_uses_configured_default(self, store, cache):
        grid = FinanceGrid(
            store=store, cache=cache, user_id=USER,
            settings=LedgerSettings(delete_policy=CategoryDeletePolicy.REPARENT),
        )
        asyncio.run(grid.load(YEAR))

        result = asyncio.run(grid.delete_category("1"))

        assert result.policy == CategoryDeletePolicy.REPARENT
        assert grid.rows(MoneyType.INCOME)[0][0].id == "2"

    def test_failed_delete_raises(self, grid, store):
        asyncio.run(grid.load(YEAR))
        store.fail_operations.add("delete_category")
        with pytest.raises(RemoteWriteFailed):
            asyncio.run(grid.delete_category("2"))
        assert "2" in {c.id for c in grid.categories()}


class TestCreateAppComponents:
    """Tests for the wiring factory."""

    def test_in_memory_wiring(self, tmp_path, monkeypatch):
        monkeypatch.setenv("FINANCE_CACHE_DIRECTORY", str(tmp_path))
        get_settings.cache_clear()

        grid = create_app_components(use_storage=False, user_id="someone")

        assert grid.user_id == "someone"
        assert isinstance(grid.clipboard, ClipboardSession)
        assert asyncio.run(grid.load(2024))
        assert (tmp_path / "finance-cache.json").exists()
