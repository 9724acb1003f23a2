"""Durable action queue for offline operation.

Actions are appended in the order they were issued and persisted on
every mutation, so the queue survives a reload with its order intact.
Only the reconciler removes actions: on success, or by converting
them into dead letters.
"""
from collections.abc import Iterator

from ukulima.core.constants import FAILED_ACTIONS_KEY, PENDING_ACTIONS_KEY, QUARANTINE_KEY
from ukulima.core.receipt import StopRule, emit_receipt, iso_ts
from ukulima.offline.actions import DeadLetter, QueuedAction, new_action, kind_of
from ukulima.offline.storage import load_record_list, quarantine_record


class ActionQueue:
    """FIFO queue of pending actions plus the dead-letter store.

    Attributes:
        storage: Durable key-value store
        tenant_id: Tenant stamped on emitted receipts
    """

    def __init__(self, storage, tenant_id: str = "default"):
        self.storage = storage
        self.tenant_id = tenant_id
        self._pending: list[QueuedAction] = []
        self._dead: list[DeadLetter] = []
        self.reload()

    # -- loading / persistence ---------------------------------------------

    def reload(self) -> None:
        """Re-read queue and dead letters from durable storage.

        Malformed records are quarantined and skipped; a stored value
        that is not a list at all is quarantined whole.
        """
        self._pending = []
        raw_pending = load_record_list(self.storage, PENDING_ACTIONS_KEY)
        for record in raw_pending:
            try:
                self._pending.append(QueuedAction.from_dict(record))
            except StopRule as e:
                quarantine_record(self.storage, PENDING_ACTIONS_KEY, record, str(e))
        if len(self._pending) != len(raw_pending):
            self._save_pending()

        self._dead = []
        raw_dead = load_record_list(self.storage, FAILED_ACTIONS_KEY)
        for record in raw_dead:
            try:
                self._dead.append(DeadLetter.from_dict(record))
            except StopRule as e:
                quarantine_record(self.storage, FAILED_ACTIONS_KEY, record, str(e))
        if len(self._dead) != len(raw_dead):
            self._save_dead()

    def _save_pending(self) -> None:
        self.storage.set(PENDING_ACTIONS_KEY, [a.to_dict() for a in self._pending])

    def _save_dead(self) -> None:
        self.storage.set(FAILED_ACTIONS_KEY, [d.to_dict() for d in self._dead])

    # -- producer side -----------------------------------------------------

    def enqueue(self, item) -> QueuedAction:
        """Append a payload (or a prepared QueuedAction) and persist.

        Args:
            item: An action payload or a QueuedAction

        Returns:
            The queued action
        """
        action = item if isinstance(item, QueuedAction) else new_action(item)
        kind_of(action.payload)
        if self.get(action.id) is not None:
            raise StopRule(f"Action {action.id} already queued")

        self._pending.append(action)
        self._save_pending()

        emit_receipt("action_enqueued", {
            "tenant_id": self.tenant_id,
            "action_id": action.id,
            "kind": action.kind.value,
            "queue_size": len(self._pending),
        })

        return action

    # -- reading -----------------------------------------------------------

    def peek_all(self) -> Iterator[QueuedAction]:
        """Yield pending actions in FIFO order.

        Each call starts a fresh pass over the current queue.
        """
        for action in list(self._pending):
            yield action

    def __iter__(self) -> Iterator[QueuedAction]:
        return self.peek_all()

    def __len__(self) -> int:
        return len(self._pending)

    def peek(self, n: int = 10) -> list[QueuedAction]:
        """View oldest N actions without removing."""
        return self._pending[:n]

    def get(self, action_id: str) -> QueuedAction | None:
        for action in self._pending:
            if action.id == action_id:
                return action
        return None

    def _require(self, action_id: str) -> QueuedAction:
        action = self.get(action_id)
        if action is None:
            raise StopRule(f"Action {action_id} not in queue")
        return action

    # -- reconciler side ---------------------------------------------------

    def remove(self, action_id: str) -> QueuedAction:
        """Drop an acknowledged action."""
        action = self._require(action_id)
        self._pending.remove(action)
        self._save_pending()
        return action

    def bump_retry(self, action_id: str) -> int:
        """Record one more failed attempt. Returns the new retry count."""
        action = self._require(action_id)
        action.retry_count += 1
        self._save_pending()
        return action.retry_count

    def dead_letter(self, action_id: str, error: str, terminal: bool = False) -> DeadLetter:
        """Move an action out of the queue into the dead-letter store."""
        action = self._require(action_id)
        letter = DeadLetter(action=action, error=error, failed_at=iso_ts(), terminal=terminal)

        self._dead.append(letter)
        self._save_dead()
        self._pending.remove(action)
        self._save_pending()

        emit_receipt("action_dead_lettered", {
            "tenant_id": self.tenant_id,
            "action_id": action.id,
            "kind": action.kind.value,
            "retry_count": action.retry_count,
            "terminal": terminal,
            "error": error,
        })

        return letter

    # -- dead letters ------------------------------------------------------

    def dead_letters(self) -> list[DeadLetter]:
        return list(self._dead)

    def resubmit(self, dead_letter_id: str) -> QueuedAction:
        """Queue a dead letter's payload again as a fresh action.

        The dead letter itself stays untouched.
        """
        for letter in self._dead:
            if letter.id == dead_letter_id:
                return self.enqueue(letter.action.payload)
        raise StopRule(f"No dead letter with id {dead_letter_id}")

    def clear_dead_letters(self) -> int:
        """Discard every dead letter. Returns how many were dropped."""
        count = len(self._dead)
        self._dead = []
        self._save_dead()
        return count

    def status(self) -> dict:
        """Current queue status."""
        return {
            "pending_count": len(self._pending),
            "dead_letter_count": len(self._dead),
            "quarantined_count": len(self.storage.get(QUARANTINE_KEY, [])),
            "oldest_pending": self._pending[0].enqueued_at if self._pending else None,
        }
