"""Shopping cart and checkout.

The cart lives entirely on the device, in the manager's mirror under
the cart namespace, so a cart left untouched past the mirror horizon
is swept with everything else. Checkout turns it into an order through
the orders collaborator.
"""
from ukulima.core.constants import NS_CART
from ukulima.core.receipt import StopRule

ITEMS_KEY = "items"


class Cart:
    """Device-local cart.

    Attributes:
        manager: Offline manager the items are persisted through
        orders: Orders collaborator used by checkout
        items: Cart lines (product, name, price, quantity)
    """

    def __init__(self, manager, orders):
        self.manager = manager
        self.orders = orders
        self.items: list[dict] = list(manager.get(NS_CART, ITEMS_KEY, []))

    def _save(self) -> None:
        self.manager.put(NS_CART, ITEMS_KEY, self.items)

    def _find(self, product_id: str) -> dict | None:
        for item in self.items:
            if item["product"] == product_id:
                return item
        return None

    def add(self, product: dict, quantity: int = 1) -> dict:
        """Add a product (dict with _id, name, price) to the cart."""
        if quantity < 1:
            raise StopRule("Quantity must be at least 1")
        if not product.get("_id"):
            raise StopRule("Product has no _id")

        item = self._find(product["_id"])
        if item:
            item["quantity"] += quantity
        else:
            item = {
                "product": product["_id"],
                "name": product.get("name", ""),
                "price": product.get("price", 0),
                "quantity": quantity,
            }
            self.items.append(item)
        self._save()
        return item

    def remove(self, product_id: str) -> bool:
        item = self._find(product_id)
        if item is None:
            return False
        self.items.remove(item)
        self._save()
        return True

    def update_quantity(self, product_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove(product_id)
            return
        item = self._find(product_id)
        if item is None:
            raise StopRule(f"Product {product_id} not in cart")
        item["quantity"] = quantity
        self._save()

    def clear(self) -> None:
        self.items = []
        self._save()

    @property
    def total(self) -> float:
        return sum(item["price"] * item["quantity"] for item in self.items)

    @property
    def item_count(self) -> int:
        return sum(item["quantity"] for item in self.items)

    async def checkout(self, shipping_address: dict, delivery_method: str,
                       payment_method: str = "mpesa") -> dict:
        """Place an order for the cart contents.

        The cart is cleared once the order is sent or safely queued.
        """
        if not self.items:
            return {"status": "empty"}

        order = {
            "items": [
                {"product": i["product"], "quantity": i["quantity"], "price": i["price"]}
                for i in self.items
            ],
            "shippingAddress": shipping_address,
            "deliveryMethod": delivery_method,
            "paymentMethod": payment_method,
            "totalAmount": self.total,
        }
        outcome = await self.orders.create_order(order)
        if outcome["status"] in ("sent", "queued"):
            self.clear()
        return outcome
