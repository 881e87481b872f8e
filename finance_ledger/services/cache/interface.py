"""
Abstract Key-Value Store Interface

The snapshot cache only needs three synchronous string operations,
the same shape as browser local storage. Implementations report any
failure (unreadable file, quota exhausted, ...) as StorageUnavailable;
the cache above them turns that into a miss.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStore(ABC):
    """Synchronous string key-value store."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Return the stored value or None if the key is absent.

        Raises:
            StorageUnavailable: If the store can't be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store a value, replacing any previous one.

        Raises:
            StorageUnavailable: If the store can't be written or is full
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """
        Remove a key. Removing an absent key is not an error.

        Raises:
            StorageUnavailable: If the store can't be written
        """
        pass


class StorageUnavailable(Exception):
    """The local key-value store could not be read or written."""
    pass


class QuotaExceeded(StorageUnavailable):
    """The write would push the store over its size quota."""
    pass
