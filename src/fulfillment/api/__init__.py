"""Fulfillment engine API package."""

from fulfillment.api.errors import register_error_handlers
from fulfillment.api.routes import (
    accounting_router,
    customer_router,
    order_router,
    packing_router,
    product_router,
    route_router,
)

__all__ = [
    "accounting_router",
    "customer_router",
    "order_router",
    "packing_router",
    "product_router",
    "route_router",
    "register_error_handlers",
]
