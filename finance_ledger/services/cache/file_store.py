"""
Durable JSON File Key-Value Store

All keys live in one JSON object on disk, the way browser local storage
keeps one origin's keys together. Writes go to a temporary file that
replaces the real one, so a crash mid-write leaves the previous
document intact.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

from finance_ledger.services.cache.interface import (
    KeyValueStore,
    QuotaExceeded,
    StorageUnavailable,
)


class JsonFileKeyValueStore(KeyValueStore):
    """Key-value store persisted as a single JSON document."""

    def __init__(self, path: Path, max_bytes: Optional[int] = None):
        self._path = Path(path)
        self.max_bytes = max_bytes

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except UnicodeDecodeError:
            # Not text at all; treated like a damaged document
            return {}
        except OSError as e:
            raise StorageUnavailable(f"Failed to read {self._path}: {e}")

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            # A damaged document is dropped, not fatal
            return {}
        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _save(self, data: dict[str, str]) -> None:
        payload = json.dumps(data, ensure_ascii=False)
        size = len(payload.encode("utf-8"))
        if self.max_bytes is not None and size > self.max_bytes:
            raise QuotaExceeded(
                f"cache document would be {size} bytes, quota is {self.max_bytes}"
            )
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent, prefix=self._path.name, suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(payload)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageUnavailable(f"Failed to write {self._path}: {e}")

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)
