"""Bakery HTTP API package."""

from bakery.api.errors import add_exception_handlers
from bakery.api.routes import cart_router, delivery_router, loyalty_router, order_router, product_router

__all__ = [
    "add_exception_handlers",
    "cart_router",
    "delivery_router",
    "loyalty_router",
    "order_router",
    "product_router",
]
