"""
Local Cache Package

A storage-agnostic key-value interface, two stores behind it, and the
versioned finance snapshot cache that sits on top.
"""

from finance_ledger.services.cache.interface import (
    KeyValueStore,
    QuotaExceeded,
    StorageUnavailable,
)
from finance_ledger.services.cache.memory import InMemoryKeyValueStore
from finance_ledger.services.cache.file_store import JsonFileKeyValueStore
from finance_ledger.services.cache.finance_cache import FinanceCache

__all__ = [
    "FinanceCache",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "QuotaExceeded",
    "StorageUnavailable",
]
