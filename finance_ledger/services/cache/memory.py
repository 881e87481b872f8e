"""In-memory key-value store, optionally size-limited."""

from typing import Optional

from finance_ledger.services.cache.interface import (
    KeyValueStore,
    QuotaExceeded,
    StorageUnavailable,
)


class InMemoryKeyValueStore(KeyValueStore):
    """
    Dictionary-backed store.

    `max_bytes` caps the total size of keys plus values, mimicking a
    browser storage quota. `available=False` makes every call fail.
    """

    def __init__(self, max_bytes: Optional[int] = None):
        self._data: dict[str, str] = {}
        self.max_bytes = max_bytes
        self.available = True

    def _check_available(self) -> None:
        if not self.available:
            raise StorageUnavailable("store is unavailable")

    def _size_with(self, key: str, value: str) -> int:
        size = sum(len(k) + len(v) for k, v in self._data.items() if k != key)
        return size + len(key) + len(value)

    def get(self, key: str) -> Optional[str]:
        self._check_available()
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._check_available()
        if self.max_bytes is not None and self._size_with(key, value) > self.max_bytes:
            raise QuotaExceeded(f"writing {key!r} exceeds quota of {self.max_bytes} bytes")
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._check_available()
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)
