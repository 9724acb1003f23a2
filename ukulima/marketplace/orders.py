"""Order lifecycle: place, list and move orders through their statuses."""
from ukulima.core.constants import NS_ORDERS
from ukulima.core.receipt import StopRule
from ukulima.offline.actions import ActionKind, CreateOrder, UpdateOrderStatus

ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled")

MY_ORDERS_KEY = "mine"


class OrdersManager:
    """The user's orders, including ones still waiting in the queue.

    Queued orders carry status "pending_sync" and the queued action id
    as localId until the replay lands.
    """

    def __init__(self, manager):
        self.manager = manager
        self.orders: list[dict] = []
        manager.register_collaborator(
            "orders",
            self.load_orders,
            kinds=[ActionKind.CREATE_ORDER, ActionKind.UPDATE_ORDER_STATUS],
        )

    async def load_orders(self) -> list[dict]:
        orders, _ = await self.manager.read_through(
            NS_ORDERS, MY_ORDERS_KEY, self.manager.remote.list_orders)
        # keep locally queued orders visible until the server has them
        queued = [
            o for o in self.orders
            if o.get("status") == "pending_sync" and self.manager.queue.get(o["localId"])
        ]
        self.orders = list(orders or []) + queued
        return self.orders

    async def create_order(self, order: dict) -> dict:
        """Place an order; queued orders show up as pending_sync."""
        if not order.get("items"):
            raise StopRule("Order must contain at least one item")

        outcome = await self.manager.submit(CreateOrder(order=order))
        if outcome["status"] == "sent":
            self.orders.insert(0, outcome["result"])
        elif outcome["status"] == "queued":
            self.orders.insert(0, {
                **order,
                "_id": None,
                "localId": outcome["action"].id,
                "status": "pending_sync",
            })
        return outcome

    async def update_order_status(self, order_id: str, status: str) -> dict:
        if status not in ORDER_STATUSES:
            raise StopRule(f"Unknown order status: {status}")

        order = self._find(order_id)
        if order is None:
            return {"status": "not_found", "order_id": order_id}
        order["status"] = status

        outcome = await self.manager.submit(UpdateOrderStatus(order_id=order_id, status=status))
        if outcome["status"] == "sent" and isinstance(outcome["result"], dict):
            order.update(outcome["result"])
        return outcome

    def _find(self, order_id: str) -> dict | None:
        for order in self.orders:
            if order.get("_id") == order_id:
                return order
        return None

    def order_stats(self) -> dict:
        """Counts by status plus revenue from paid orders."""
        stats = {status: 0 for status in ("pending", "confirmed", "delivered", "cancelled")}
        stats["total"] = len(self.orders)
        stats["revenue"] = 0
        for order in self.orders:
            if order.get("status") in stats:
                stats[order["status"]] += 1
            if order.get("paymentStatus") == "paid":
                stats["revenue"] += order.get("totalAmount", 0)
        return stats
