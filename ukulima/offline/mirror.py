"""Local mirror of last-known entity state.

The mirror is a read cache, never a source of truth: every successful
remote read overwrites it, reads never touch the network, and stale
entries are simply swept away.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from ukulima.core.constants import MIRROR_HORIZON_DAYS, MIRROR_KEY_PREFIX
from ukulima.core.receipt import StopRule, emit_receipt, iso_ts, parse_ts, utc_now
from ukulima.core.schemas import SCHEMA_VERSION, validate_record
from ukulima.offline.storage import quarantine_record


@dataclass(frozen=True)
class MirrorEntry:
    """Snapshot of one entity as last read from the remote API."""
    namespace: str
    key: str
    value: Any
    timestamp: datetime


class MirrorStore:
    """Per-namespace entity cache persisted to durable storage.

    Attributes:
        storage: Durable key-value store
        clock: Callable returning the current aware datetime
    """

    def __init__(self, storage, clock: Callable[[], datetime] = utc_now):
        self.storage = storage
        self.clock = clock

    def _storage_key(self, namespace: str) -> str:
        if not namespace:
            raise StopRule("Mirror namespace must be non-empty")
        return MIRROR_KEY_PREFIX + namespace

    def _load(self, namespace: str) -> dict[str, dict]:
        """Load a namespace, quarantining malformed entries."""
        storage_key = self._storage_key(namespace)
        raw = self.storage.get(storage_key, {})
        if not isinstance(raw, dict):
            quarantine_record(self.storage, storage_key, raw, "namespace is not an object")
            self.storage.set(storage_key, {})
            return {}

        entries = {}
        dropped = False
        for key, record in raw.items():
            try:
                validate_record("mirror_entry", record)
                parse_ts(record["timestamp"])
            except StopRule as e:
                quarantine_record(self.storage, storage_key, {key: record}, str(e))
                dropped = True
                continue
            entries[key] = record

        if dropped:
            self.storage.set(storage_key, entries)
        return entries

    def get(self, namespace: str, key: str, default: Any = None) -> Any:
        """Return the cached value or default. Never blocks on the network."""
        record = self._load(namespace).get(str(key))
        if record is None:
            return default
        return record["value"]

    def get_entry(self, namespace: str, key: str) -> MirrorEntry | None:
        record = self._load(namespace).get(str(key))
        if record is None:
            return None
        return MirrorEntry(
            namespace=namespace,
            key=str(key),
            value=record["value"],
            timestamp=parse_ts(record["timestamp"]),
        )

    def put(self, namespace: str, key: str, value: Any) -> MirrorEntry:
        """Overwrite the entry unconditionally (last write wins)."""
        entries = self._load(namespace)
        now = self.clock()
        entries[str(key)] = {
            "schema_version": SCHEMA_VERSION,
            "value": value,
            "timestamp": iso_ts(now),
        }
        self.storage.set(self._storage_key(namespace), entries)
        return MirrorEntry(namespace=namespace, key=str(key), value=value, timestamp=now)

    def delete(self, namespace: str, key: str) -> bool:
        entries = self._load(namespace)
        if str(key) not in entries:
            return False
        del entries[str(key)]
        self.storage.set(self._storage_key(namespace), entries)
        return True

    def entries(self, namespace: str) -> list[MirrorEntry]:
        return [
            MirrorEntry(
                namespace=namespace,
                key=key,
                value=record["value"],
                timestamp=parse_ts(record["timestamp"]),
            )
            for key, record in self._load(namespace).items()
        ]

    def namespaces(self) -> list[str]:
        return [
            k[len(MIRROR_KEY_PREFIX):]
            for k in self.storage.keys()
            if k.startswith(MIRROR_KEY_PREFIX)
        ]

    def sweep_expired(
        self,
        horizon: timedelta = timedelta(days=MIRROR_HORIZON_DAYS),
        tenant_id: str = "default",
    ) -> int:
        """Remove entries older than horizon across all namespaces.

        Returns:
            Number of entries removed
        """
        cutoff = self.clock() - horizon
        removed = 0

        for namespace in self.namespaces():
            entries = self._load(namespace)
            kept = {
                key: record
                for key, record in entries.items()
                if parse_ts(record["timestamp"]) >= cutoff
            }
            if len(kept) != len(entries):
                removed += len(entries) - len(kept)
                self.storage.set(self._storage_key(namespace), kept)

        emit_receipt("mirror_sweep", {
            "tenant_id": tenant_id,
            "cutoff": iso_ts(cutoff),
            "removed_count": removed,
        })

        return removed
