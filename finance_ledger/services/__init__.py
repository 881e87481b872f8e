"""Services package."""

from finance_ledger.services.cache import (
    FinanceCache,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    QuotaExceeded,
    StorageUnavailable,
)
from finance_ledger.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    FinanceStoreInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFinanceStore,
    InMemoryFinanceStore,
    NotFoundError,
    RemoteWriteFailed,
    StorageError,
)

__all__ = [
    # Local cache
    "FinanceCache",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "QuotaExceeded",
    "StorageUnavailable",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "FinanceStoreInterface",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsFinanceStore",
    "InMemoryFinanceStore",
    "NotFoundError",
    "RemoteWriteFailed",
    "StorageError",
]
