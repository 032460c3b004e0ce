"""Order model type definitions for database operations."""

from datetime import datetime
from enum import Enum
from typing import TypedDict
from uuid import UUID


class OrderStatus(str, Enum):
    """Order status values, stored verbatim in the orders table."""

    PENDING_APPROVAL = "Pending Approval"
    REJECTED = "Rejected"
    PROCESSING = "Processing"
    PRINTING = "Printing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    COMPLETED = "Completed"


# Intended fulfillment graph; Rejected and Completed are terminal
ORDER_STATUS_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING_APPROVAL: frozenset({OrderStatus.PROCESSING, OrderStatus.REJECTED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.PRINTING}),
    OrderStatus.PRINTING: frozenset({OrderStatus.SHIPPED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.COMPLETED}),
    OrderStatus.REJECTED: frozenset(),
    OrderStatus.COMPLETED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ORDER_STATUS_TRANSITIONS.items() if not targets
)


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Whether target is reachable from current in one step.

    Re-entering the current status is allowed so a failed side effect can
    be retried by re-applying the same status.
    """
    return target is current or target in ORDER_STATUS_TRANSITIONS[current]


class OrderItem(TypedDict):
    """A single line item, stored in the items JSONB array."""

    box_id: str
    deck_quantity: int
    cards_per_deck: int
    material_finish: str
    card_stock: str
    box_type: str


class ShippingDetails(TypedDict, total=False):
    """Postal address and contact for delivery."""

    full_name: str
    email: str
    phone: str | None
    address: str
    city: str
    country: str
    country_code: str
    zip_code: str


class CostSnapshot(TypedDict):
    """Costs frozen at order creation, stored as decimal strings."""

    cards_subtotal: str
    boxes_subtotal: str
    shipping: str
    tax: str
    total: str


class StatusHistoryEntry(TypedDict):
    """One entry of the append-only status log."""

    status: str
    date: str


class Order(TypedDict):
    """Order table row representation.

    Maps directly to the database schema.
    """

    id: UUID
    order_id: str
    user_id: UUID
    items: list[OrderItem]
    shipping_details: ShippingDetails
    costs: CostSnapshot
    payment_method: str
    transaction_id: str
    order_status: str
    status_history: list[StatusHistoryEntry]
    dhl_tracking_number: str
    shipment_requested_at: datetime | None
    printable_pdf_url: str
    created_at: datetime
    updated_at: datetime


class OrderCreate(TypedDict):
    """Data required to insert a new order."""

    order_id: str
    user_id: str
    items: list[OrderItem]
    shipping_details: ShippingDetails
    costs: CostSnapshot
    payment_method: str
    transaction_id: str
    order_status: str
    status_history: list[StatusHistoryEntry]


class OrderUpdate(TypedDict, total=False):
    """Fields that change after creation."""

    order_status: str
    status_history: list[StatusHistoryEntry]
    dhl_tracking_number: str
    shipment_requested_at: str | None
    printable_pdf_url: str
