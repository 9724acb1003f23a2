"""Remote API boundary.

Wraps the marketplace REST API behind awaitable operations. Requests
run on a worker thread so a pending call suspends the awaiting task
without blocking other event handling.

Failure classification:
- Network errors and timeouts: retryable
- HTTP 408/425/429 and 5xx: retryable
- Any other 4xx: terminal (replaying the same request cannot succeed)
"""
import asyncio
import socket
from urllib.parse import urlencode

import requests

from ukulima.config import OfflineConfig
from ukulima.core.constants import PRODUCTS_PAGE_SIZE, RETRYABLE_STATUS_CODES, TOKEN_KEY
from ukulima.core.receipt import StopRule, emit_receipt
from ukulima.offline.actions import (
    ApiCall,
    CreateOrder,
    QueuedAction,
    SendMessage,
    UpdateOrderStatus,
    UpdateProduct,
)


class RemoteError(Exception):
    """A remote operation failed.

    Attributes:
        status: HTTP status, or None when no response arrived
        retryable: Whether a later attempt may succeed
    """

    def __init__(self, message: str, status: int | None = None, retryable: bool = True):
        super().__init__(message)
        self.status = status
        self.retryable = retryable

    @classmethod
    def from_status(cls, status: int, message: str) -> "RemoteError":
        retryable = status in RETRYABLE_STATUS_CODES or status >= 500
        return cls(message, status=status, retryable=retryable)


def is_reachable(host: str, port: int, timeout: float = 5.0) -> bool:
    """Check if a host accepts TCP connections.

    Args:
        host: Host to probe
        port: Port to probe
        timeout: Connection timeout in seconds

    Returns:
        True if the connection succeeded
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(timeout)
        result = sock.connect_ex((host, port))
        sock.close()
        return result == 0
    except (socket.error, OSError):
        return False


class RemoteAPI:
    """Marketplace REST client.

    Attributes:
        config: Client configuration (base URL, timeout)
        storage: Durable store holding the auth token
        session: requests.Session used for every call
    """

    def __init__(self, config: OfflineConfig, storage, session: requests.Session | None = None):
        self.config = config
        self.storage = storage
        self.session = session or requests.Session()

    @property
    def token(self) -> str | None:
        return self.storage.get(TOKEN_KEY)

    # -- transport ---------------------------------------------------------

    def _request(self, endpoint: str, method: str, body: dict | None) -> dict | list:
        url = f"{self.config.api_base}{endpoint}"
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        # GET never carries a body
        if method.upper() == "GET":
            body = None

        try:
            response = self.session.request(
                method.upper(),
                url,
                json=body,
                headers=headers,
                timeout=self.config.request_timeout_s,
            )
        except requests.Timeout as e:
            raise RemoteError(f"Request timed out: {method} {endpoint}") from e
        except requests.RequestException as e:
            raise RemoteError(f"Network error: {e}") from e

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            if not response.ok:
                raise RemoteError.from_status(
                    response.status_code, f"HTTP error! status: {response.status_code}")
            raise RemoteError("Server returned non-JSON response", status=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteError("Server returned malformed JSON", status=response.status_code) from e

        if not response.ok:
            message = data.get("message") if isinstance(data, dict) else None
            raise RemoteError.from_status(
                response.status_code,
                message or f"HTTP error! status: {response.status_code}",
            )

        return data

    async def call(self, endpoint: str, method: str = "GET", body: dict | None = None):
        """Call an endpoint and return its decoded JSON.

        Raises:
            RemoteError: On any transport or HTTP failure
        """
        try:
            return await asyncio.to_thread(self._request, endpoint, method, body)
        except RemoteError as e:
            emit_receipt("remote_call_failed", {
                "tenant_id": self.config.tenant_id,
                "endpoint": endpoint,
                "method": method.upper(),
                "status": e.status,
                "retryable": e.retryable,
                "error": str(e),
            })
            raise

    # -- auth --------------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> dict:
        data = await self.call("/auth/login", "POST", {"email": email, "password": password})
        if isinstance(data, dict) and data.get("token"):
            self.storage.set(TOKEN_KEY, data["token"])
        return data

    async def sign_up(self, profile: dict) -> dict:
        data = await self.call("/auth/register", "POST", profile)
        if isinstance(data, dict) and data.get("token"):
            self.storage.set(TOKEN_KEY, data["token"])
        return data

    def sign_out(self) -> None:
        self.storage.remove(TOKEN_KEY)

    async def me(self) -> dict:
        return await self.call("/auth/me")

    # -- products ----------------------------------------------------------

    async def list_products(self, page: int = 1, filters: dict | None = None) -> dict:
        query = urlencode({"page": page, "limit": PRODUCTS_PAGE_SIZE, **(filters or {})})
        return await self.call(f"/products?{query}")

    async def get_product(self, product_id: str) -> dict:
        return await self.call(f"/products/{product_id}")

    async def create_product(self, product: dict) -> dict:
        return await self.call("/products", "POST", product)

    async def update_product(self, product_id: str, data: dict) -> dict:
        return await self.call(f"/products/{product_id}", "PUT", data)

    # -- orders ------------------------------------------------------------

    async def create_order(self, order: dict) -> dict:
        return await self.call("/orders", "POST", order)

    async def list_orders(self) -> list:
        return await self.call("/orders/myorders")

    async def update_order_status(self, order_id: str, status: str) -> dict:
        return await self.call(f"/orders/{order_id}/status", "PUT", {"status": status})

    async def update_payment_status(self, order_id: str, payment_status: str,
                                    mpesa_code: str = "") -> dict:
        return await self.call(f"/orders/{order_id}/payment", "PUT", {
            "paymentStatus": payment_status,
            "mpesaCode": mpesa_code,
        })

    # -- messages ----------------------------------------------------------

    async def send_message(self, receiver: str, content: str, message_type: str = "text") -> dict:
        return await self.call("/messages", "POST", {
            "receiver": receiver,
            "content": content,
            "messageType": message_type,
        })

    async def list_conversations(self) -> list:
        return await self.call("/messages/conversations")

    async def list_messages(self, user_id: str) -> list:
        return await self.call(f"/messages/{user_id}")

    # -- analytics ---------------------------------------------------------

    async def post_analytics_events(self, events: list[dict]) -> dict:
        return await self.call("/analytics/events", "POST", {"events": events})

    # -- replay ------------------------------------------------------------

    async def execute(self, action: QueuedAction):
        """Replay a queued action through the matching operation.

        Raises:
            RemoteError: If the remote operation fails
            StopRule: If the payload type has no operation
        """
        payload = action.payload
        if isinstance(payload, ApiCall):
            return await self.call(payload.endpoint, payload.method, payload.body)
        elif isinstance(payload, CreateOrder):
            return await self.create_order(payload.order)
        elif isinstance(payload, SendMessage):
            return await self.send_message(payload.receiver, payload.content, payload.message_type)
        elif isinstance(payload, UpdateProduct):
            return await self.update_product(payload.product_id, payload.data)
        elif isinstance(payload, UpdateOrderStatus):
            return await self.update_order_status(payload.order_id, payload.status)
        raise StopRule(f"No remote operation for {type(payload).__name__}")

    def is_reachable(self) -> bool:
        return is_reachable(
            self.config.probe_host,
            self.config.probe_port,
            self.config.probe_timeout_s,
        )
