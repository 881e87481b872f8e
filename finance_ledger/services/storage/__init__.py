"""
Storage Services Package

Provides the abstract ledger store interface and its implementations.
Google Sheets is the remote backend; the in-memory store backs the tests
and offline use.
"""

from finance_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    FinanceStoreInterface,
    NotFoundError,
    RemoteWriteFailed,
    StorageError,
)
from finance_ledger.services.storage.memory import InMemoryFinanceStore
from finance_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFinanceStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "FinanceStoreInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "RemoteWriteFailed",
    "StorageError",
    # Implementations
    "InMemoryFinanceStore",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsFinanceStore",
]
