"""Connectivity monitor.

Holds the single is_online flag the reconciler is gated on and turns
network transitions into hook calls. Page visibility is only a hint to
re-check; it never flips the flag by itself.
"""
import asyncio
from typing import Awaitable, Callable

from ukulima.core.receipt import emit_receipt

Hook = Callable[[], Awaitable[None]]
Listener = Callable[[bool], None]


class ConnectivityMonitor:
    """Tracks online/offline state and fires transition hooks.

    Attributes:
        on_online: Awaited on every offline -> online transition
        on_offline: Called on every online -> offline transition
        on_recheck: Awaited when a visibility hint arrives while online
    """

    def __init__(
        self,
        initial_online: bool = True,
        on_online: Hook | None = None,
        on_offline: Callable[[], None] | None = None,
        on_recheck: Hook | None = None,
        tenant_id: str = "default",
    ):
        self._online = initial_online
        self.on_online = on_online
        self.on_offline = on_offline
        self.on_recheck = on_recheck
        self.tenant_id = tenant_id
        self._listeners: list[Listener] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a state listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    async def set_online(self, online: bool) -> bool:
        """Apply a network state event.

        Returns:
            True if the state changed
        """
        if online == self._online:
            return False

        self._online = online
        emit_receipt("connectivity_change", {
            "tenant_id": self.tenant_id,
            "status": "online" if online else "offline",
        })
        for listener in list(self._listeners):
            listener(online)

        if online:
            if self.on_online is not None:
                await self.on_online()
        elif self.on_offline is not None:
            self.on_offline()

        return True

    async def visibility_changed(self, hidden: bool) -> None:
        """Page became hidden/visible. Visible + online triggers a re-check."""
        if not hidden and self._online and self.on_recheck is not None:
            await self.on_recheck()

    async def probe(self, check: Callable[[], bool]) -> bool:
        """Run a blocking reachability check and apply its result.

        Returns:
            The resulting online state
        """
        reachable = await asyncio.to_thread(check)
        await self.set_online(reachable)
        return self._online
