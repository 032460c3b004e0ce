"""Database model type definitions."""

from src.models.order import ORDER_STATUS_TRANSITIONS, Order, OrderStatus
from src.models.pricing import PriceConfiguration

__all__ = [
    "Order",
    "OrderStatus",
    "ORDER_STATUS_TRANSITIONS",
    "PriceConfiguration",
]
