"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for the remote ledger store.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the grid core decoupled from the storage implementation

The grid core never aggregates on the server. The store only has to
hand back rows and accept row mutations.
"""

from abc import ABC, abstractmethod
from typing import Optional

from finance_ledger.models.audit import AuditEvent
from finance_ledger.models.ledger import Category, Entry, EntryPatch


class FinanceStoreInterface(ABC):
    """
    Abstract interface for ledger entry and category storage.

    Any storage implementation (Google Sheets, PostgreSQL, etc.)
    must implement these methods. All calls are suspension points;
    nothing else in the grid core blocks on I/O.
    """

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_entries(
        self,
        category_id: str,
        month: int,
        year: int,
    ) -> list[Entry]:
        """
        List the entries of one cell.

        Returns:
            Entries ordered by position, then creation time
        """
        pass

    @abstractmethod
    async def list_entries_for_year(self, user_id: str, year: int) -> list[Entry]:
        """
        List every entry of a user for one year.

        Used to build the whole grid in one round trip.
        """
        pass

    @abstractmethod
    async def insert_entry(self, entry: Entry) -> Entry:
        """
        Insert one entry.

        Returns:
            The stored entry

        Raises:
            RemoteWriteFailed: If the backend rejects the write
        """
        pass

    @abstractmethod
    async def insert_entries(self, entries: list[Entry]) -> list[Entry]:
        """
        Insert several entries as one write.

        Either all entries are stored or none is.

        Raises:
            RemoteWriteFailed: If the backend rejects the write
        """
        pass

    @abstractmethod
    async def update_entry(self, entry_id: str, patch: EntryPatch) -> Entry:
        """
        Apply a partial update to an entry.

        Raises:
            NotFoundError: If the entry doesn't exist
            RemoteWriteFailed: If the backend rejects the write
        """
        pass

    @abstractmethod
    async def delete_entry(self, entry_id: str) -> None:
        """
        Delete an entry.

        Raises:
            RemoteWriteFailed: If the backend rejects the write
        """
        pass

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_categories(self, user_id: str) -> list[Category]:
        """List a user's categories in creation order."""
        pass

    @abstractmethod
    async def insert_category(self, category: Category) -> Category:
        """
        Insert a category.

        Raises:
            RemoteWriteFailed: If the backend rejects the write
        """
        pass

    @abstractmethod
    async def rename_category(self, category_id: str, name: str) -> Category:
        """
        Rename a category.

        Raises:
            NotFoundError: If the category doesn't exist
            RemoteWriteFailed: If the backend rejects the write
        """
        pass

    @abstractmethod
    async def reparent_category(
        self,
        category_id: str,
        parent_id: Optional[str],
    ) -> Category:
        """
        Move a category under another parent (None makes it a root).

        Raises:
            NotFoundError: If the category doesn't exist
            RemoteWriteFailed: If the backend rejects the write
        """
        pass

    @abstractmethod
    async def delete_category(self, category_id: str) -> None:
        """
        Delete one category and all of its entries.

        Children are NOT touched here; the caller decides the policy.

        Raises:
            RemoteWriteFailed: If the backend rejects the write
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class RemoteWriteFailed(StorageError):
    """
    The backend rejected an insert, update or delete.

    The grid rolls back any optimistic value before re-raising this
    so the caller can notify the user.
    """

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
