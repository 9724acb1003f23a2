"""Tests for the offline queue and its durable storage."""
import json

import pytest

from ukulima.core.constants import FAILED_ACTIONS_KEY, PENDING_ACTIONS_KEY, QUARANTINE_KEY
from ukulima.core.receipt import StopRule
from ukulima.offline.actions import (
    ActionKind,
    ApiCall,
    CreateOrder,
    QueuedAction,
    SendMessage,
    UpdateProduct,
    new_action,
)
from ukulima.offline.queue import ActionQueue
from ukulima.offline.remote import is_reachable
from ukulima.offline.storage import FileStorage, MemoryStorage


class TestActionQueue:
    """Test action queue functionality."""

    def test_enqueue_assigns_identity(self, queue):
        """Enqueue assigns an id, timestamp and zero retries."""
        action = queue.enqueue(SendMessage(receiver="u1", content="hi"))

        assert action.id
        assert action.enqueued_at.endswith("Z")
        assert action.retry_count == 0
        assert action.kind == ActionKind.SEND_MESSAGE

    def test_queue_size(self, queue):
        """Test queue size tracking."""
        assert len(queue) == 0

        queue.enqueue(CreateOrder(order={"items": [1]}))
        assert len(queue) == 1

        queue.enqueue(SendMessage(receiver="u1", content="hi"))
        assert len(queue) == 2

    def test_enqueue_persists_immediately(self, storage, queue):
        """The durable copy is written before enqueue returns."""
        action = queue.enqueue(UpdateProduct(product_id="p1", data={"price": 60}))

        stored = storage.get(PENDING_ACTIONS_KEY)
        assert [r["id"] for r in stored] == [action.id]
        assert stored[0]["kind"] == "update_product"
        assert stored[0]["schema_version"] == 1

    def test_peek_queue(self, queue):
        """Test peeking at queue contents."""
        first = queue.enqueue(SendMessage(receiver="u1", content="first"))
        queue.enqueue(SendMessage(receiver="u1", content="second"))

        peeked = queue.peek(1)
        assert len(peeked) == 1
        assert peeked[0].id == first.id
        assert len(queue) == 2

    def test_peek_all_is_restartable(self, queue):
        """Each peek_all() call starts from the head again."""
        for i in range(3):
            queue.enqueue(ApiCall(endpoint=f"/things/{i}"))

        first_pass = [a.payload.endpoint for a in queue.peek_all()]
        second_pass = [a.payload.endpoint for a in queue]

        assert first_pass == ["/things/0", "/things/1", "/things/2"]
        assert second_pass == first_pass

    def test_fifo_survives_reload(self, file_storage):
        """Reloading from disk yields the same order and content."""
        queue = ActionQueue(file_storage)
        payloads = [
            CreateOrder(order={"items": [{"product": "p1", "quantity": 2}]}),
            SendMessage(receiver="seller-9", content="Order placed, please confirm"),
            UpdateProduct(product_id="p1", data={"stock": 10}),
            ApiCall(endpoint="/orders/o1/payment", method="PUT", body={"paymentStatus": "paid"}),
        ]
        originals = [queue.enqueue(p) for p in payloads]

        restarted = ActionQueue(FileStorage(file_storage.directory))

        assert [a.to_dict() for a in restarted] == [a.to_dict() for a in originals]
        assert [a.payload for a in restarted] == payloads

    def test_duplicate_id_rejected(self, queue):
        """The same QueuedAction cannot be queued twice."""
        action = new_action(SendMessage(receiver="u1", content="hi"))
        queue.enqueue(action)

        with pytest.raises(StopRule):
            queue.enqueue(action)

    def test_unknown_payload_rejected(self, queue):
        """Only known payload types can be queued."""
        with pytest.raises(StopRule):
            queue.enqueue({"type": "api_call"})

    def test_remove_unknown_raises(self, queue):
        with pytest.raises(StopRule):
            queue.remove("missing")

    def test_malformed_records_quarantined(self, storage):
        """Bad records on disk are moved aside, good ones still load."""
        good = new_action(SendMessage(receiver="u1", content="hi")).to_dict()
        storage.set(PENDING_ACTIONS_KEY, [
            {"id": "x", "kind": "api_call"},
            dict(good),
            {**good, "id": "y", "kind": "teleport"},
            {**good, "id": "z", "schema_version": 99},
        ])

        queue = ActionQueue(storage)

        assert [a.id for a in queue] == [good["id"]]
        quarantined = storage.get(QUARANTINE_KEY)
        assert len(quarantined) == 3
        assert {q["source"] for q in quarantined} == {PENDING_ACTIONS_KEY}
        assert queue.status()["quarantined_count"] == 3

    @pytest.mark.parametrize("stored", [None, 5, "oops", {"id": "x"}])
    def test_non_list_queue_value_quarantined(self, storage, stored):
        """A stored queue that is not a list is set aside, not iterated."""
        storage.set(PENDING_ACTIONS_KEY, stored)
        storage.set(FAILED_ACTIONS_KEY, stored)

        queue = ActionQueue(storage)

        assert len(queue) == 0
        assert queue.dead_letters() == []
        assert storage.get(PENDING_ACTIONS_KEY) == []
        assert storage.get(FAILED_ACTIONS_KEY) == []
        quarantined = storage.get(QUARANTINE_KEY)
        assert [q["source"] for q in quarantined] == [PENDING_ACTIONS_KEY, FAILED_ACTIONS_KEY]
        assert quarantined[0]["record"] == stored

    def test_queue_usable_after_quarantine(self, storage):
        storage.set(PENDING_ACTIONS_KEY, None)
        queue = ActionQueue(storage)

        queue.enqueue(SendMessage(receiver="u1", content="hi"))

        assert len(ActionQueue(storage)) == 1


class TestDeadLetters:
    """Test the dead-letter store."""

    def test_dead_letter_moves_action(self, storage, queue):
        action = queue.enqueue(CreateOrder(order={"items": [1]}))

        letter = queue.dead_letter(action.id, "HTTP error! status: 500")

        assert len(queue) == 0
        assert queue.dead_letters() == [letter]
        assert storage.get(FAILED_ACTIONS_KEY)[0]["action"]["id"] == action.id

    def test_dead_letters_survive_reload(self, file_storage):
        queue = ActionQueue(file_storage)
        action = queue.enqueue(SendMessage(receiver="u1", content="hi"))
        queue.bump_retry(action.id)
        queue.dead_letter(action.id, "boom", terminal=True)

        restarted = ActionQueue(FileStorage(file_storage.directory))

        [letter] = restarted.dead_letters()
        assert letter.id == action.id
        assert letter.terminal is True
        assert letter.action.retry_count == 1

    def test_resubmit_creates_fresh_action(self, queue):
        """Resubmission queues a new action and leaves the letter alone."""
        action = queue.enqueue(SendMessage(receiver="u1", content="hi"))
        queue.bump_retry(action.id)
        queue.dead_letter(action.id, "boom")

        fresh = queue.resubmit(action.id)

        assert fresh.id != action.id
        assert fresh.retry_count == 0
        assert fresh.payload == action.payload
        assert len(queue.dead_letters()) == 1

    def test_resubmit_unknown_raises(self, queue):
        with pytest.raises(StopRule):
            queue.resubmit("nope")

    def test_clear_dead_letters(self, queue):
        for i in range(2):
            action = queue.enqueue(ApiCall(endpoint=f"/x/{i}"))
            queue.dead_letter(action.id, "boom")

        assert queue.clear_dead_letters() == 2
        assert queue.dead_letters() == []


class TestStorage:
    """Test durable key-value storage."""

    def test_file_storage_roundtrip(self, file_storage):
        file_storage.set("pendingActions", [{"a": 1}])
        assert file_storage.get("pendingActions") == [{"a": 1}]
        assert file_storage.get("missing", []) == []

    def test_keys_are_sanitized(self, file_storage):
        """Namespaced keys map to safe file names."""
        file_storage.set("mirror:orders", {"o1": {}})

        assert (file_storage.directory / "mirror_orders.json").exists()
        assert "mirror:orders" in file_storage.keys()

    def test_corrupt_file_reads_as_default(self, file_storage):
        path = file_storage.directory / "cart.json"
        path.write_text("{not json")

        assert file_storage.get("cart", []) == []
        assert not path.exists()
        assert (file_storage.directory / "cart.corrupt").exists()

    def test_invalid_utf8_reads_as_default(self, file_storage):
        path = file_storage.directory / "token.json"
        path.write_bytes(b"\xff\xfe\x00garbage")

        assert file_storage.get("token") is None
        assert (file_storage.directory / "token.corrupt").exists()

    def test_key_named_like_index_does_not_clobber_it(self, file_storage):
        file_storage.set("_keys", {"shadow": True})
        file_storage.set("keys", ["not", "an", "index"])
        file_storage.set("token", "abc")

        assert file_storage.keys() == ["_keys", "keys", "token"]
        assert file_storage.get("_keys") == {"shadow": True}

    def test_no_temp_files_left_behind(self, file_storage):
        file_storage.set("token", "abc")
        leftovers = [p for p in file_storage.directory.iterdir() if p.name.startswith(".tmp-")]
        assert leftovers == []

    def test_remove_and_usage(self, file_storage):
        file_storage.set("token", "abc")
        assert file_storage.usage_bytes() == len(json.dumps("abc"))

        file_storage.remove("token")
        assert file_storage.get("token") is None
        assert file_storage.keys() == []

    def test_memory_storage_copies_values(self):
        """Mutating a value after set() does not change the stored copy."""
        storage = MemoryStorage()
        value = {"items": [1]}
        storage.set("cart", value)
        value["items"].append(2)

        assert storage.get("cart") == {"items": [1]}


class TestQueuedActionRecords:
    """Test the persisted record format."""

    def test_from_dict_rejects_negative_retries(self):
        record = new_action(SendMessage(receiver="u1", content="hi")).to_dict()
        record["retry_count"] = -1
        with pytest.raises(StopRule):
            QueuedAction.from_dict(record)

    def test_from_dict_rejects_bad_payload_fields(self):
        record = new_action(SendMessage(receiver="u1", content="hi")).to_dict()
        record["payload"] = {"to": "u1"}
        with pytest.raises(StopRule):
            QueuedAction.from_dict(record)


class TestConnectivity:
    """Test connectivity checking."""

    def test_is_reachable_default(self):
        """Probe of a closed local port returns a bool."""
        result = is_reachable("127.0.0.1", 9, timeout=0.5)
        assert isinstance(result, bool)
