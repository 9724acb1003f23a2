"""Tests for ukulima.offline.connectivity."""
import asyncio

from ukulima.offline.connectivity import ConnectivityMonitor


class Hooks:
    def __init__(self):
        self.events = []

    async def online(self):
        self.events.append("online")

    def offline(self):
        self.events.append("offline")

    async def recheck(self):
        self.events.append("recheck")


def make_monitor(online=True):
    hooks = Hooks()
    monitor = ConnectivityMonitor(
        initial_online=online,
        on_online=hooks.online,
        on_offline=hooks.offline,
        on_recheck=hooks.recheck,
    )
    return monitor, hooks


class TestTransitions:
    def test_going_offline_then_online(self):
        monitor, hooks = make_monitor(online=True)

        assert asyncio.run(monitor.set_online(False)) is True
        assert monitor.is_online is False
        assert asyncio.run(monitor.set_online(True)) is True
        assert monitor.is_online is True

        assert hooks.events == ["offline", "online"]

    def test_same_state_is_noop(self):
        monitor, hooks = make_monitor(online=True)

        assert asyncio.run(monitor.set_online(True)) is False
        assert hooks.events == []

    def test_listeners_notified_and_unsubscribe(self):
        monitor, _ = make_monitor(online=True)
        seen = []
        unsubscribe = monitor.subscribe(seen.append)

        asyncio.run(monitor.set_online(False))
        unsubscribe()
        asyncio.run(monitor.set_online(True))

        assert seen == [False]


class TestVisibilityHint:
    def test_visible_and_online_rechecks(self):
        monitor, hooks = make_monitor(online=True)
        asyncio.run(monitor.visibility_changed(hidden=False))
        assert hooks.events == ["recheck"]

    def test_hint_never_changes_state(self):
        monitor, hooks = make_monitor(online=False)

        asyncio.run(monitor.visibility_changed(hidden=False))
        asyncio.run(monitor.visibility_changed(hidden=True))

        assert monitor.is_online is False
        assert hooks.events == []


class TestProbe:
    def test_probe_applies_result(self):
        monitor, hooks = make_monitor(online=False)

        assert asyncio.run(monitor.probe(lambda: True)) is True
        assert asyncio.run(monitor.probe(lambda: False)) is False
        assert hooks.events == ["online", "offline"]
