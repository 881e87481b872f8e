"""
Finance Snapshot Cache

Read-aside, write-through cache of one (user, year) grid snapshot.

DESIGN DECISION: The cache is an optimisation, never a source of truth.
- Keys carry a schema version, so an incompatible change simply misses
  old snapshots instead of failing to parse them
- Every failure (store unavailable, quota exhausted, corrupt JSON) is
  logged and reported as a miss; nothing here raises to the caller
- Structural category changes must call clear(), because a cached tree
  shape is wrong even when its numbers are close
"""

from typing import Optional

import structlog
from pydantic import ValidationError

from finance_ledger.models.ledger import CacheSnapshot
from finance_ledger.services.cache.interface import KeyValueStore, StorageUnavailable


logger = structlog.get_logger(__name__)


class FinanceCache:
    """Versioned, user- and year-scoped snapshot cache."""

    def __init__(
        self,
        store: KeyValueStore,
        schema_version: str = "v2",
        prefix: str = "finance",
    ):
        self._store = store
        self._schema_version = schema_version
        self._prefix = prefix

    @property
    def schema_version(self) -> str:
        return self._schema_version

    def key(self, user_id: str, year: int) -> str:
        """Composite key: prefix:schemaVersion:user:year."""
        return f"{self._prefix}:{self._schema_version}:{user_id}:{year}"

    def write(self, user_id: str, year: int, snapshot: CacheSnapshot) -> bool:
        """
        Store a snapshot.

        Returns:
            True if stored, False if the store refused (logged)
        """
        key = self.key(user_id, year)
        try:
            self._store.set(key, snapshot.model_dump_json())
        except StorageUnavailable as e:
            logger.warning("finance_cache_write_failed", key=key, error=str(e))
            return False
        return True

    def read(self, user_id: str, year: int) -> Optional[CacheSnapshot]:
        """
        Return the last written snapshot, or None on a miss.

        Absent, unreadable and corrupt entries are all misses.
        """
        key = self.key(user_id, year)
        try:
            raw = self._store.get(key)
        except StorageUnavailable as e:
            logger.warning("finance_cache_read_failed", key=key, error=str(e))
            return None

        if raw is None:
            return None

        try:
            return CacheSnapshot.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "finance_cache_corrupt",
                key=key,
                error_count=e.error_count(),
            )
            return None
        except (ValueError, TypeError) as e:
            # Raised from inside a validator rather than reported by pydantic
            logger.warning("finance_cache_corrupt", key=key, error=str(e))
            return None

    def clear(self, user_id: str, year: int) -> bool:
        """
        Drop the snapshot for (user, year).

        Returns:
            True if removed (or already absent), False if the store refused
        """
        key = self.key(user_id, year)
        try:
            self._store.remove(key)
        except StorageUnavailable as e:
            logger.warning("finance_cache_clear_failed", key=key, error=str(e))
            return False
        return True
