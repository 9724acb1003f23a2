"""Marketplace collaborators built on the offline manager."""
from ukulima.marketplace.auth import AuthManager
from ukulima.marketplace.cart import Cart
from ukulima.marketplace.messages import MessagesManager
from ukulima.marketplace.orders import ORDER_STATUSES, OrdersManager
from ukulima.marketplace.products import ProductsManager

__all__ = [
    "AuthManager",
    "Cart",
    "MessagesManager",
    "ORDER_STATUSES",
    "OrdersManager",
    "ProductsManager",
]
