"""
In-Memory Storage Implementation

Used by the tests and when no remote backend is configured.
Rows are copied on the way in and on the way out, so callers can never
mutate stored state by holding on to a returned model.

Writes can be made to fail on purpose (see `fail_operations`) to
exercise rollback paths.
"""

from typing import Optional

from finance_ledger.models.ledger import Category, Entry, EntryPatch
from finance_ledger.services.storage.interface import (
    FinanceStoreInterface,
    NotFoundError,
    RemoteWriteFailed,
)


class InMemoryFinanceStore(FinanceStoreInterface):
    """Dictionary-backed ledger store."""

    def __init__(
        self,
        categories: Optional[list[Category]] = None,
        entries: Optional[list[Entry]] = None,
    ):
        self._categories: dict[str, Category] = {}
        self._entries: dict[str, Entry] = {}
        for category in categories or []:
            self._categories[category.id] = category.model_copy()
        for entry in entries or []:
            self._entries[entry.id] = entry.model_copy()
        # Operation names (e.g. "insert_entries") that should be rejected
        self.fail_operations: set[str] = set()
        self.read_count = 0

    def _check_write(self, operation: str) -> None:
        if operation in self.fail_operations:
            raise RemoteWriteFailed(operation, "rejected by backend")

    @staticmethod
    def _order(entries: list[Entry]) -> list[Entry]:
        return sorted(entries, key=lambda e: (e.position, e.created_at))

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    async def list_entries(self, category_id: str, month: int, year: int) -> list[Entry]:
        self.read_count += 1
        cell = [
            e.model_copy()
            for e in self._entries.values()
            if e.category_id == category_id and e.month == month and e.year == year
        ]
        return self._order(cell)

    async def list_entries_for_year(self, user_id: str, year: int) -> list[Entry]:
        self.read_count += 1
        rows = [
            e.model_copy()
            for e in self._entries.values()
            if e.year == year and (not e.user_id or e.user_id == user_id)
        ]
        return self._order(rows)

    async def insert_entry(self, entry: Entry) -> Entry:
        self._check_write("insert_entry")
        if entry.category_id not in self._categories:
            raise RemoteWriteFailed("insert_entry", f"unknown category {entry.category_id}")
        self._entries[entry.id] = entry.model_copy()
        return entry.model_copy()

    async def insert_entries(self, entries: list[Entry]) -> list[Entry]:
        self._check_write("insert_entries")
        missing = {e.category_id for e in entries} - set(self._categories)
        if missing:
            raise RemoteWriteFailed("insert_entries", f"unknown categories {sorted(missing)}")
        for entry in entries:
            self._entries[entry.id] = entry.model_copy()
        return [entry.model_copy() for entry in entries]

    async def update_entry(self, entry_id: str, patch: EntryPatch) -> Entry:
        self._check_write("update_entry")
        current = self._entries.get(entry_id)
        if current is None:
            raise NotFoundError(f"Entry not found: {entry_id}")
        updated = current.model_copy(update=patch.changes())
        self._entries[entry_id] = updated
        return updated.model_copy()

    async def delete_entry(self, entry_id: str) -> None:
        self._check_write("delete_entry")
        self._entries.pop(entry_id, None)

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def list_categories(self, user_id: str) -> list[Category]:
        self.read_count += 1
        rows = [
            c.model_copy()
            for c in self._categories.values()
            if not c.user_id or c.user_id == user_id
        ]
        return sorted(rows, key=lambda c: c.created_at)

    async def insert_category(self, category: Category) -> Category:
        self._check_write("insert_category")
        self._categories[category.id] = category.model_copy()
        return category.model_copy()

    async def rename_category(self, category_id: str, name: str) -> Category:
        self._check_write("rename_category")
        current = self._categories.get(category_id)
        if current is None:
            raise NotFoundError(f"Category not found: {category_id}")
        # Re-validate so blank names are rejected like on insert
        renamed = Category.model_validate({**current.model_dump(), "name": name})
        self._categories[category_id] = renamed
        return renamed.model_copy()

    async def reparent_category(self, category_id: str, parent_id: Optional[str]) -> Category:
        self._check_write("reparent_category")
        current = self._categories.get(category_id)
        if current is None:
            raise NotFoundError(f"Category not found: {category_id}")
        moved = current.model_copy(update={"parent_id": parent_id})
        self._categories[category_id] = moved
        return moved.model_copy()

    async def delete_category(self, category_id: str) -> None:
        self._check_write("delete_category")
        self._categories.pop(category_id, None)
        for entry_id in [e.id for e in self._entries.values() if e.category_id == category_id]:
            del self._entries[entry_id]
