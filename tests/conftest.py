"""Pytest fixtures for Ukulima offline tests.

FakeRemote: scriptable stand-in for the remote API boundary
FakeClock: settable clock for mirror expiry
Fixtures: storage, queue, mirror, manager wired to the fakes
"""
import asyncio
from datetime import datetime, timezone

import pytest

from ukulima.config import OfflineConfig
from ukulima.notify import RecordingNotifier
from ukulima.offline.actions import ActionKind
from ukulima.offline.manager import OfflineManager
from ukulima.offline.mirror import MirrorStore
from ukulima.offline.queue import ActionQueue
from ukulima.offline.remote import RemoteError
from ukulima.offline.storage import FileStorage, MemoryStorage


class FakeRemote:
    """Records every replay; failures are scripted per action kind."""

    def __init__(self):
        self.calls = []
        self.read_calls = []
        self.analytics_batches = []
        self.token = None
        self.reachable = True
        self.gate: asyncio.Event | None = None
        self.analytics_gate: asyncio.Event | None = None
        self.read_error: RemoteError | None = None
        self._scripted: dict[ActionKind, list[RemoteError]] = {}
        self._always: dict[ActionKind, RemoteError] = {}
        self.data = {
            "orders": [{"_id": "o1", "status": "pending", "paymentStatus": "paid", "totalAmount": 500}],
            "conversations": [{"user": {"_id": "u1"}, "unreadCount": 2}],
            "messages": [{"_id": "m1", "content": "hello"}],
            "products": {"products": [{"_id": "p1", "name": "Maize", "price": 50}],
                         "currentPage": 1, "totalPages": 1, "total": 1},
            "me": {"_id": "me", "name": "Wanjiku"},
        }

    def fail_next(self, kind: ActionKind, *errors: RemoteError):
        self._scripted.setdefault(kind, []).extend(errors)

    def fail_always(self, kind: ActionKind, error: RemoteError):
        self._always[kind] = error

    def calls_for(self, kind: ActionKind) -> list:
        return [a for a in self.calls if a.kind == kind]

    async def execute(self, action):
        self.calls.append(action)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if action.kind in self._always:
            raise self._always[action.kind]
        scripted = self._scripted.get(action.kind)
        if scripted:
            raise scripted.pop(0)
        return {"_id": f"srv-{len(self.calls)}", "kind": action.kind.value}

    async def _read(self, name: str):
        self.read_calls.append(name)
        await asyncio.sleep(0)
        if self.read_error is not None:
            raise self.read_error
        return self.data[name]

    async def list_orders(self):
        return await self._read("orders")

    async def list_conversations(self):
        return await self._read("conversations")

    async def list_messages(self, user_id):
        return await self._read("messages")

    async def list_products(self, page=1, filters=None):
        return await self._read("products")

    async def get_product(self, product_id):
        products = (await self._read("products"))["products"]
        return next(p for p in products if p["_id"] == product_id)

    async def me(self):
        return await self._read("me")

    async def sign_in(self, email, password):
        self.token = "tok"
        return {"token": "tok"}

    async def sign_up(self, profile):
        self.token = "tok"
        return {"token": "tok"}

    def sign_out(self):
        self.token = None

    async def post_analytics_events(self, events):
        if self.read_error is not None:
            raise self.read_error
        self.analytics_batches.append(list(events))
        if self.analytics_gate is not None:
            await self.analytics_gate.wait()
        else:
            await asyncio.sleep(0)
        return {"received": len(events)}

    def is_reachable(self):
        return self.reachable


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture(autouse=True)
def quiet_receipts(monkeypatch):
    """Keep receipt JSON out of test output."""
    monkeypatch.setenv("UKULIMA_QUIET_RECEIPTS", "true")


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def file_storage(tmp_path):
    return FileStorage(tmp_path / "store")


@pytest.fixture
def config(tmp_path):
    return OfflineConfig(api_base="https://api.test/api", data_dir=tmp_path / "data")


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def queue(storage):
    return ActionQueue(storage)


@pytest.fixture
def mirror(storage, clock):
    return MirrorStore(storage, clock=clock)


@pytest.fixture
def make_manager(config, storage, remote, notifier, clock):
    """Factory so tests can pick the initial connectivity."""
    def _make(online: bool = True) -> OfflineManager:
        return OfflineManager(config, storage, remote, notifier=notifier,
                              online=online, clock=clock)
    return _make


@pytest.fixture
def server_error():
    return RemoteError("HTTP error! status: 500", status=500, retryable=True)
