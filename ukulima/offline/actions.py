"""Queued action variants.

Every mutation that can be queued is a typed payload dataclass. The
action kind is derived from the payload type, so a QueuedAction can
never carry a kind its payload does not match.
"""
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum

from ukulima.core.receipt import StopRule, iso_ts
from ukulima.core.schemas import SCHEMA_VERSION, validate_record


class ActionKind(Enum):
    """Kinds of mutation the reconciler knows how to replay."""
    API_CALL = "api_call"
    CREATE_ORDER = "create_order"
    SEND_MESSAGE = "send_message"
    UPDATE_PRODUCT = "update_product"
    UPDATE_ORDER_STATUS = "update_order_status"


@dataclass(frozen=True)
class ApiCall:
    """Raw call against an API endpoint."""
    endpoint: str
    method: str = "POST"
    body: dict | None = None


@dataclass(frozen=True)
class CreateOrder:
    order: dict


@dataclass(frozen=True)
class SendMessage:
    receiver: str
    content: str
    message_type: str = "text"


@dataclass(frozen=True)
class UpdateProduct:
    product_id: str
    data: dict


@dataclass(frozen=True)
class UpdateOrderStatus:
    order_id: str
    status: str


ActionPayload = ApiCall | CreateOrder | SendMessage | UpdateProduct | UpdateOrderStatus

PAYLOAD_TYPES: dict[ActionKind, type] = {
    ActionKind.API_CALL: ApiCall,
    ActionKind.CREATE_ORDER: CreateOrder,
    ActionKind.SEND_MESSAGE: SendMessage,
    ActionKind.UPDATE_PRODUCT: UpdateProduct,
    ActionKind.UPDATE_ORDER_STATUS: UpdateOrderStatus,
}
_KIND_BY_TYPE = {payload_type: kind for kind, payload_type in PAYLOAD_TYPES.items()}


def kind_of(payload: ActionPayload) -> ActionKind:
    """Return the ActionKind for a payload instance.

    Raises:
        StopRule: If payload is not one of the known payload types
    """
    kind = _KIND_BY_TYPE.get(type(payload))
    if kind is None:
        raise StopRule(f"Unknown action payload: {type(payload).__name__}")
    return kind


def payload_from_dict(kind: ActionKind, data: dict) -> ActionPayload:
    """Rebuild a typed payload from its persisted dict.

    Raises:
        StopRule: If the dict does not fit the payload's fields
    """
    payload_type = PAYLOAD_TYPES[kind]
    try:
        return payload_type(**data)
    except TypeError as e:
        raise StopRule(f"Bad {kind.value} payload: {e}") from e


@dataclass
class QueuedAction:
    """A mutation waiting to be replayed against the remote API."""
    id: str
    payload: ActionPayload
    enqueued_at: str
    retry_count: int = 0

    @property
    def kind(self) -> ActionKind:
        return kind_of(self.payload)

    def to_dict(self) -> dict:
        return {
            "schema_version": SCHEMA_VERSION,
            "id": self.id,
            "kind": self.kind.value,
            "payload": asdict(self.payload),
            "enqueued_at": self.enqueued_at,
            "retry_count": self.retry_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QueuedAction":
        """Restore a persisted action.

        Raises:
            StopRule: If the record is malformed or of an unknown kind
        """
        validate_record("queued_action", data)
        try:
            kind = ActionKind(data["kind"])
        except ValueError as e:
            raise StopRule(f"Unknown action kind: {data['kind']}") from e
        if data["retry_count"] < 0:
            raise StopRule(f"Negative retry_count on action {data['id']}")
        return cls(
            id=data["id"],
            payload=payload_from_dict(kind, data["payload"]),
            enqueued_at=data["enqueued_at"],
            retry_count=data["retry_count"],
        )


@dataclass(frozen=True)
class DeadLetter:
    """Terminal record of an action that will not be replayed again."""
    action: QueuedAction
    error: str
    failed_at: str = field(default_factory=iso_ts)
    terminal: bool = False

    @property
    def id(self) -> str:
        return self.action.id

    def to_dict(self) -> dict:
        return {
            "schema_version": SCHEMA_VERSION,
            "action": self.action.to_dict(),
            "error": self.error,
            "failed_at": self.failed_at,
            "terminal": self.terminal,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DeadLetter":
        validate_record("dead_letter", data)
        return cls(
            action=QueuedAction.from_dict(data["action"]),
            error=data["error"],
            failed_at=data["failed_at"],
            terminal=data["terminal"],
        )


def new_action(payload: ActionPayload) -> QueuedAction:
    """Wrap a payload in a fresh QueuedAction (new id, now, zero retries)."""
    kind_of(payload)
    return QueuedAction(
        id=str(uuid.uuid4()),
        payload=payload,
        enqueued_at=iso_ts(),
        retry_count=0,
    )
