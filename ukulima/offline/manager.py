"""Offline manager: owner of the queue, dead letters and mirror.

Construct one per process and hand it to the marketplace
collaborators. They enqueue and read through it; nothing else touches
the underlying storage.

Usage:
    manager = OfflineManager.from_config(OfflineConfig.from_env())
    orders = OrdersManager(manager)

    outcome = await manager.submit(SendMessage(receiver="u1", content="hi"))
    await manager.monitor.set_online(True)
"""
import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from ukulima.config import OfflineConfig
from ukulima.core.constants import (
    ANALYTICS_BUFFER_LIMIT,
    OFFLINE_ANALYTICS_KEY,
    OFFLINE_FEATURES,
)
from ukulima.core.receipt import StopRule, emit_receipt, iso_ts, utc_now
from ukulima.core.schemas import validate_record
from ukulima.notify import ReceiptNotifier
from ukulima.offline.actions import ActionPayload, QueuedAction, new_action
from ukulima.offline.connectivity import ConnectivityMonitor
from ukulima.offline.mirror import MirrorStore
from ukulima.offline.queue import ActionQueue
from ukulima.offline.remote import RemoteAPI, RemoteError
from ukulima.offline.storage import FileStorage, load_record_list, quarantine_record
from ukulima.offline.sync import Reconciler

Refresh = Callable[[], Awaitable[object]]
Task = Callable[[], Awaitable[object]]


@dataclass
class Collaborator:
    """A component whose read path refreshes part of the mirror."""
    name: str
    refresh: Refresh
    kinds: frozenset = field(default_factory=frozenset)


class OfflineManager:
    """Offline-first entry point wrapping the queue and the mirror.

    Attributes:
        config: Client configuration
        storage: Durable key-value store
        remote: Remote API boundary
        notifier: Toast sink
        queue: Pending actions and dead letters
        mirror: Last-known entity cache
        reconciler: Queue drainer
        monitor: Connectivity state
        degraded: True while offline features are disabled
    """

    def __init__(
        self,
        config: OfflineConfig,
        storage,
        remote,
        notifier=None,
        online: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config
        self.storage = storage
        self.remote = remote
        self.notifier = notifier or ReceiptNotifier(config.tenant_id)
        self.tenant_id = config.tenant_id

        self.queue = ActionQueue(storage, tenant_id=self.tenant_id)
        self.mirror = MirrorStore(storage, clock=clock)
        self.reconciler = Reconciler(
            self.queue,
            remote,
            self.notifier,
            max_retries=config.max_retries,
            on_replayed=self._after_replay,
            tenant_id=self.tenant_id,
        )
        self.monitor = ConnectivityMonitor(
            initial_online=online,
            on_online=self._handle_online,
            on_offline=self._handle_offline,
            on_recheck=self._recheck,
            tenant_id=self.tenant_id,
        )

        self.degraded = not online
        self.last_sync: str | None = None
        self._collaborators: dict[str, Collaborator] = {}
        self._deferred: list[Task] = []
        self._tasks: set[asyncio.Task] = set()
        self._flushing = False
        self._flush_requested = False

    @classmethod
    def from_config(cls, config: OfflineConfig, notifier=None, online: bool = True) -> "OfflineManager":
        """Build a manager with file storage and the HTTP remote."""
        problems = config.validate()
        if problems:
            raise StopRule("Invalid configuration: " + "; ".join(problems))
        storage = FileStorage(config.data_dir)
        return cls(config, storage, RemoteAPI(config, storage), notifier=notifier, online=online)

    @property
    def is_online(self) -> bool:
        return self.monitor.is_online

    # -- collaborators -----------------------------------------------------

    def register_collaborator(self, name: str, refresh: Refresh, kinds=()) -> None:
        """Register a read path to run on full sync and after replays of kinds."""
        self._collaborators[name] = Collaborator(name, refresh, frozenset(kinds))

    # -- queue -------------------------------------------------------------

    def enqueue(self, payload: ActionPayload | QueuedAction) -> QueuedAction:
        """Durably queue an action; if online, start a pass in the background."""
        action = self.queue.enqueue(payload)
        if self.is_online:
            self._schedule(self.process_pending_actions())
        return action

    async def submit(self, payload: ActionPayload) -> dict:
        """Try a mutation now, falling back to the queue.

        Returns:
            Dict with status "sent" (and result), "queued" (and action)
            or "rejected" (and error) for terminal failures
        """
        if not self.is_online:
            action = self.queue.enqueue(payload)
            self.notifier.toast("Saved Offline", "Will sync when you are back online", "info")
            return {"status": "queued", "action": action}

        attempt = new_action(payload)
        try:
            result = await self.remote.execute(attempt)
        except RemoteError as e:
            if not e.retryable:
                self.notifier.toast("Error", str(e), "error")
                return {"status": "rejected", "error": str(e), "http_status": e.status}

            self.notifier.toast("Connection Problem", f"{e}. Will retry automatically.", "warning")
            action = self.queue.enqueue(attempt)
            return {"status": "queued", "action": action, "error": str(e)}

        return {"status": "sent", "result": result}

    async def process_pending_actions(self) -> dict:
        if not self.is_online:
            return {"status": "offline", "replayed": 0, "retried": 0,
                    "dead_lettered": 0, "remaining": len(self.queue)}
        return await self.reconciler.process_pending_actions()

    # -- mirror ------------------------------------------------------------

    def get(self, namespace: str, key: str, default=None):
        return self.mirror.get(namespace, key, default)

    def put(self, namespace: str, key: str, value):
        return self.mirror.put(namespace, key, value)

    async def read_through(self, namespace: str, key: str, fetch: Refresh) -> tuple[object, str]:
        """Fetch remotely and mirror the result; fall back to the mirror.

        Returns:
            (value, source) where source is "remote", "mirror" or "none"
        """
        if self.is_online:
            try:
                value = await fetch()
            except RemoteError:
                pass
            else:
                self.mirror.put(namespace, key, value)
                return value, "remote"

        value = self.mirror.get(namespace, key)
        return value, "mirror" if value is not None else "none"

    def start_session(self) -> int:
        """Once-per-session housekeeping. Returns expired entries removed."""
        return self.mirror.sweep_expired(
            timedelta(days=self.config.mirror_horizon_days),
            tenant_id=self.tenant_id,
        )

    # -- sync --------------------------------------------------------------

    async def sync_all_data(self) -> dict:
        """Refresh every collaborator concurrently; failures are collected."""
        if not self.is_online:
            return {"status": "offline", "synced": [], "failed": {}}

        names = list(self._collaborators)
        results = await asyncio.gather(
            *(self._collaborators[n].refresh() for n in names),
            return_exceptions=True,
        )

        synced, failed = [], {}
        for name, result in zip(names, results):
            if isinstance(result, StopRule):
                raise result
            if isinstance(result, Exception):
                failed[name] = str(result)
            else:
                synced.append(name)

        self.last_sync = iso_ts()
        emit_receipt("data_sync", {
            "tenant_id": self.tenant_id,
            "synced": synced,
            "failed": failed,
        })
        return {"status": "done", "synced": synced, "failed": failed}

    async def _after_replay(self, action: QueuedAction, result) -> None:
        """Refresh collaborators that own the replayed kind.

        A failing refresh is recorded and skipped so the pass carries on;
        the mirror catches up on the next successful read. StopRule
        still propagates.
        """
        for collaborator in self._collaborators.values():
            if action.kind not in collaborator.kinds:
                continue
            try:
                await collaborator.refresh()
            except StopRule:
                raise
            except Exception as e:
                emit_receipt("collaborator_refresh_failed", {
                    "tenant_id": self.tenant_id,
                    "collaborator": collaborator.name,
                    "action_id": action.id,
                    "error": str(e),
                })

    # -- connectivity ------------------------------------------------------

    async def _handle_online(self) -> None:
        self.degraded = False
        self.notifier.toast("Back Online", "Connection restored", "success")
        await self.process_pending_actions()
        await self.run_deferred()
        await self.sync_analytics()
        await self.sync_all_data()

    def _handle_offline(self) -> None:
        self.degraded = True
        self.notifier.toast("Offline Mode", "Some features limited", "warning")

    async def _recheck(self) -> None:
        await self.process_pending_actions()
        await self.run_deferred()

    async def check_connectivity(self) -> bool:
        """Probe the API host and apply the result to the monitor."""
        return await self.monitor.probe(self.remote.is_reachable)

    def is_feature_available_offline(self, feature: str) -> bool:
        return feature in OFFLINE_FEATURES

    def requires_online(self, feature: str) -> bool:
        """True if the feature must be disabled right now."""
        return self.degraded and not self.is_feature_available_offline(feature)

    # -- deferred tasks ----------------------------------------------------

    def defer(self, task: Task) -> None:
        """Run task once connectivity allows (immediately if online)."""
        self._deferred.append(task)
        if self.is_online:
            self._schedule(self.run_deferred())

    async def run_deferred(self) -> int:
        if not self.is_online or not self._deferred:
            return 0
        tasks, self._deferred = self._deferred, []
        for task in tasks:
            await task()
        return len(tasks)

    # -- offline analytics -------------------------------------------------

    def track_event(self, event: str, data: dict | None = None) -> None:
        """Buffer an analytics event; only the newest events are kept."""
        events = self._load_events()
        events.append({
            "id": uuid.uuid4().hex,
            "event": event,
            "data": data,
            "timestamp": iso_ts(),
            "online": self.is_online,
        })
        events = events[-ANALYTICS_BUFFER_LIMIT:]
        self.storage.set(OFFLINE_ANALYTICS_KEY, events)

        if self.is_online:
            self._schedule(self.sync_analytics())

    def _load_events(self) -> list[dict]:
        raw = load_record_list(self.storage, OFFLINE_ANALYTICS_KEY)
        events = []
        for record in raw:
            try:
                validate_record("analytics_event", record)
            except StopRule as e:
                quarantine_record(self.storage, OFFLINE_ANALYTICS_KEY, record, str(e))
                continue
            events.append(record)
        if len(events) != len(raw):
            self.storage.set(OFFLINE_ANALYTICS_KEY, events)
        return events

    async def sync_analytics(self) -> int:
        """Flush buffered analytics events. Returns how many were sent.

        One flush runs at a time. A call made while a flush is in flight
        returns 0 and makes the running flush go round again for events
        tracked in the meantime.
        """
        if self._flushing:
            self._flush_requested = True
            return 0

        self._flushing = True
        sent = 0
        try:
            while True:
                self._flush_requested = False
                count = await self._flush_analytics_once()
                sent += count
                if not count or not self._flush_requested:
                    break
        finally:
            self._flushing = False
        return sent

    async def _flush_analytics_once(self) -> int:
        events = self._load_events()
        if not events or not self.is_online:
            return 0

        try:
            await self.remote.post_analytics_events(events)
        except RemoteError:
            return 0

        # drop exactly what was sent; the buffer may have shifted meanwhile
        sent_ids = {e["id"] for e in events}
        remaining = [e for e in self._load_events() if e["id"] not in sent_ids]
        self.storage.set(OFFLINE_ANALYTICS_KEY, remaining)
        emit_receipt("analytics_flush", {
            "tenant_id": self.tenant_id,
            "sent_count": len(events),
            "remaining_count": len(remaining),
        })
        return len(events)

    # -- status ------------------------------------------------------------

    def network_status(self) -> dict:
        return {
            "online": self.is_online,
            "degraded": self.degraded,
            "last_sync": self.last_sync,
            "reconciling": self.reconciler.busy,
            **self.queue.status(),
        }

    def storage_usage(self) -> int:
        return self.storage.usage_bytes()

    # -- background tasks --------------------------------------------------

    def _schedule(self, coro) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # no loop: the next explicit pass picks the work up
            coro.close()
            return
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for background passes started by enqueue/track_event."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))
