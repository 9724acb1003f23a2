"""Sync reconciler: replays the action queue against the remote API.

Reconciliation pass:
1. Snapshot pending action ids (FIFO)
2. Replay each through the remote boundary, one at a time
3. Success: drop the action, notify, refresh the owning collaborator
4. Retryable failure: bump retry_count, dead-letter at the ceiling
5. Terminal failure: dead-letter immediately
6. Move on to the next action either way

A failed action never blocks the ones behind it, so ordering is
best-effort once something fails.
"""
from typing import Awaitable, Callable

from ukulima.core.constants import MAX_RETRIES
from ukulima.core.receipt import emit_receipt
from ukulima.offline.actions import ActionKind, QueuedAction
from ukulima.offline.queue import ActionQueue
from ukulima.offline.remote import RemoteError

ReplayHook = Callable[[QueuedAction, object], Awaitable[None]]


SUCCESS_MESSAGES = {
    ActionKind.API_CALL: "Queued request sent",
    ActionKind.CREATE_ORDER: "Order placed successfully!",
    ActionKind.SEND_MESSAGE: "Message delivered",
    ActionKind.UPDATE_PRODUCT: "Product updated",
    ActionKind.UPDATE_ORDER_STATUS: "Order status updated",
}


class Reconciler:
    """Drains an ActionQueue, one action at a time.

    Attributes:
        queue: Queue to drain
        remote: Object with an async execute(action) method
        notifier: Toast sink for user-visible outcomes
        max_retries: Retry ceiling before dead-lettering
        on_replayed: Optional async hook called after each success. It
            must not raise except StopRule, which aborts the pass.
    """

    def __init__(
        self,
        queue: ActionQueue,
        remote,
        notifier,
        max_retries: int = MAX_RETRIES,
        on_replayed: ReplayHook | None = None,
        tenant_id: str = "default",
    ):
        self.queue = queue
        self.remote = remote
        self.notifier = notifier
        self.max_retries = max_retries
        self.on_replayed = on_replayed
        self.tenant_id = tenant_id
        self._busy = False
        self.passes = 0

    @property
    def busy(self) -> bool:
        return self._busy

    async def process_pending_actions(self) -> dict:
        """Run one reconciliation pass.

        An overlapping call while a pass is in flight is a no-op.

        Returns:
            Pass summary: status, replayed, retried, dead_lettered, remaining
        """
        if self._busy:
            emit_receipt("reconcile_skipped", {
                "tenant_id": self.tenant_id,
                "reason": "pass_in_flight",
                "pending_count": len(self.queue),
            })
            return {"status": "busy", "replayed": 0, "retried": 0,
                    "dead_lettered": 0, "remaining": len(self.queue)}

        self._busy = True
        try:
            summary = await self._run_pass()
        finally:
            self._busy = False

        self.passes += 1
        emit_receipt("reconcile_pass", {
            "tenant_id": self.tenant_id,
            "pass_number": self.passes,
            **summary,
        })
        return summary

    async def _run_pass(self) -> dict:
        replayed = retried = dead_lettered = 0

        for action_id in [a.id for a in self.queue.peek_all()]:
            action = self.queue.get(action_id)
            if action is None:
                continue

            try:
                result = await self.remote.execute(action)
            except RemoteError as e:
                if self._record_failure(action, e):
                    dead_lettered += 1
                else:
                    retried += 1
                continue

            self.queue.remove(action.id)
            replayed += 1
            emit_receipt("action_replayed", {
                "tenant_id": self.tenant_id,
                "action_id": action.id,
                "kind": action.kind.value,
                "attempt": action.retry_count + 1,
            })
            self.notifier.toast("Synced", SUCCESS_MESSAGES[action.kind], "success")

            if self.on_replayed is not None:
                await self.on_replayed(action, result)

        return {
            "status": "done",
            "replayed": replayed,
            "retried": retried,
            "dead_lettered": dead_lettered,
            "remaining": len(self.queue),
        }

    def _record_failure(self, action: QueuedAction, error: RemoteError) -> bool:
        """Turn a failed attempt into queue state. Returns True if dead-lettered."""
        retry_count = self.queue.bump_retry(action.id)

        if not error.retryable:
            self.queue.dead_letter(action.id, str(error), terminal=True)
            return True

        if retry_count >= self.max_retries:
            self.queue.dead_letter(action.id, str(error), terminal=False)
            return True

        emit_receipt("action_retry", {
            "tenant_id": self.tenant_id,
            "action_id": action.id,
            "kind": action.kind.value,
            "retry_count": retry_count,
            "status": error.status,
            "error": str(error),
        })
        return False
