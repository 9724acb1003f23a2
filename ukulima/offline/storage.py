"""Durable key-value storage for the offline core.

Synchronous, in-process persistence playing the part a browser's
localStorage plays: the action queue, dead letters and mirror all live
here under fixed keys and survive a restart.

Design constraints:
- File-based only (no database required)
- One JSON document per key, replaced atomically
- A corrupt document never takes the process down
"""
import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any

from ukulima.core.constants import QUARANTINE_KEY
from ukulima.core.receipt import emit_receipt, iso_ts


class StorageError(Exception):
    """Raised when the storage location itself is unusable."""
    pass


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def _file_name(key: str) -> str:
    """Map a storage key to a filesystem-safe file name."""
    if not key:
        raise StorageError("Storage key must be non-empty")
    return _UNSAFE_CHARS.sub("_", key) + ".json"


class MemoryStorage:
    """In-process storage. Values are JSON round-tripped on write so
    callers never share mutable state with the store."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str, default: Any = None) -> Any:
        raw = self._data.get(key)
        if raw is None:
            return default
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)

    def usage_bytes(self) -> int:
        return sum(len(k) + len(v) for k, v in self._data.items())


class FileStorage:
    """Directory-backed storage, one JSON file per key.

    Attributes:
        directory: Directory holding the key files
    """

    def __init__(self, directory: str | Path):
        """Initialize FileStorage.

        Args:
            directory: Directory for key files (created if missing)

        Raises:
            StorageError: If the directory cannot be created
        """
        self.directory = Path(directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create storage directory {self.directory}: {e}") from e
        # not a .json name, so no storage key can map onto it
        self._key_index = self.directory / "keys.index"

    def _path(self, key: str) -> Path:
        return self.directory / _file_name(key)

    def get(self, key: str, default: Any = None) -> Any:
        """Read the value stored under key.

        A file holding invalid JSON (or invalid UTF-8) is renamed aside with a .corrupt
        suffix and the default is returned.
        """
        path = self._path(key)
        if not path.exists():
            return default

        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError):
            corrupt = path.with_suffix(".corrupt")
            os.replace(path, corrupt)
            emit_receipt("storage_corrupt", {
                "key": key,
                "moved_to": str(corrupt),
            })
            return default

    def set(self, key: str, value: Any) -> None:
        """Write value under key atomically (temp file + rename)."""
        path = self._path(key)
        fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, sort_keys=True)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        self._remember_key(key)

    def remove(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()
        index = self._load_index()
        if key in index:
            index.remove(key)
            self._save_index(index)

    def keys(self) -> list[str]:
        """Keys written through this store, in sorted order."""
        return sorted(k for k in self._load_index() if self._path(k).exists())

    def usage_bytes(self) -> int:
        """Total size of all key files in bytes."""
        return sum(self._path(k).stat().st_size for k in self.keys())

    def _load_index(self) -> list[str]:
        if not self._key_index.exists():
            return []
        try:
            with open(self._key_index, encoding="utf-8") as f:
                index = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return []
        return index if isinstance(index, list) else []

    def _save_index(self, index: list[str]) -> None:
        with open(self._key_index, "w", encoding="utf-8") as f:
            json.dump(sorted(index), f)

    def _remember_key(self, key: str) -> None:
        index = self._load_index()
        if key not in index:
            index.append(key)
            self._save_index(index)


def quarantine_record(storage, source_key: str, record: Any, reason: str) -> dict:
    """Move a malformed record aside instead of crashing on it.

    Args:
        storage: Store holding the quarantine list
        source_key: Key the record was loaded from
        record: The raw record as found
        reason: Why it was rejected

    Returns:
        The record_quarantined receipt
    """
    quarantined = storage.get(QUARANTINE_KEY, [])
    if not isinstance(quarantined, list):
        quarantined = [{"source": QUARANTINE_KEY, "record": quarantined,
                        "reason": "quarantine is not a list", "quarantined_at": iso_ts()}]
    quarantined.append({
        "source": source_key,
        "record": record,
        "reason": reason,
        "quarantined_at": iso_ts(),
    })
    storage.set(QUARANTINE_KEY, quarantined)

    return emit_receipt("record_quarantined", {
        "source": source_key,
        "reason": reason,
        "quarantine_size": len(quarantined),
    })


def load_record_list(storage, key: str) -> list:
    """Read a list-valued key; any other shape is quarantined and reset.

    Returns:
        The stored list, or [] after quarantining a non-list value
    """
    raw = storage.get(key, [])
    if isinstance(raw, list):
        return raw
    quarantine_record(storage, key, raw, f"expected a list, got {type(raw).__name__}")
    storage.set(key, [])
    return []
