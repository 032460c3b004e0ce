"""Order Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from src.models.order import OrderStatus
from src.schemas.common import PaginationMeta
from src.schemas.quote import normalize_country_code
from src.services.pricing_service import quantize_money


class OrderItemSchema(BaseModel):
    """Schema for a single line item in an order."""

    model_config = ConfigDict(from_attributes=True)

    box_id: str = Field(min_length=1, description="Box (card design collection) identifier")
    deck_quantity: int = Field(ge=1, description="Number of decks")
    cards_per_deck: int = Field(ge=1, description="Cards in each deck")
    material_finish: str = Field(min_length=1, description="Finish, e.g. Linen")
    card_stock: str = Field(min_length=1, description="Card stock, matches a price table card type")
    box_type: str = Field(min_length=1, description="Packaging type")


class ShippingDetailsSchema(BaseModel):
    """Full postal address and contact for delivery."""

    model_config = ConfigDict(from_attributes=True)

    full_name: str = Field(min_length=1, description="Recipient name")
    email: str = Field(min_length=3, description="Recipient email")
    phone: str | None = Field(default=None, description="Recipient phone")
    address: str = Field(min_length=1, description="Street address")
    city: str = Field(min_length=1, description="City")
    country: str = Field(min_length=1, description="Country name")
    country_code: str = Field(description="ISO 3166-1 alpha-2 country code")
    zip_code: str = Field(min_length=1, description="Postal code")

    @field_validator("country_code")
    @classmethod
    def validate_country_code(cls, value: str) -> str:
        return normalize_country_code(value)


class OrderCreateRequest(BaseModel):
    """Schema for POST /orders."""

    model_config = ConfigDict(from_attributes=True)

    items: list[OrderItemSchema] = Field(min_length=1, description="Line items; only the first is priced")
    shipping_details: ShippingDetailsSchema = Field(description="Delivery address")
    payment_method: str = Field(min_length=1, description="stripe or paypal")
    transaction_id: str = Field(min_length=1, description="Gateway payment reference")


class CostsSchema(BaseModel):
    """Costs frozen at order creation.

    Stored values keep full precision; responses carry cents.
    """

    model_config = ConfigDict(from_attributes=True)

    cards_subtotal: Decimal
    boxes_subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal

    @field_serializer("cards_subtotal", "boxes_subtotal", "shipping", "tax", "total")
    def round_to_cents(self, value: Decimal) -> Decimal:
        return quantize_money(value)


class StatusHistoryEntrySchema(BaseModel):
    """One status change."""

    model_config = ConfigDict(from_attributes=True)

    status: str
    date: datetime


class OrderResponse(BaseModel):
    """Schema for order API responses."""

    model_config = ConfigDict(from_attributes=True)

    order_id: str = Field(description="Human-readable order identifier, e.g. #ORD-2026-00042")
    user_id: UUID = Field(description="Owning account")
    items: list[OrderItemSchema] = Field(description="Order line items")
    shipping_details: ShippingDetailsSchema = Field(description="Delivery address")
    costs: CostsSchema = Field(description="Frozen cost snapshot")
    payment_method: str = Field(description="Gateway used")
    transaction_id: str = Field(description="Gateway payment reference")
    order_status: OrderStatus = Field(description="Current status")
    status_history: list[StatusHistoryEntrySchema] = Field(default_factory=list, description="Oldest first")
    dhl_tracking_number: str = Field(default="", description="Carrier tracking number once shipped")
    printable_pdf_url: str = Field(default="", description="Print-ready file location")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")
    updated_at: datetime | None = Field(default=None, description="Last update timestamp")

    @field_validator("dhl_tracking_number", "printable_pdf_url", mode="before")
    @classmethod
    def empty_when_null(cls, value: str | None) -> str:
        return value or ""


class OrderListResponse(BaseModel):
    """Schema for order list API responses."""

    model_config = ConfigDict(from_attributes=True)

    items: list[OrderResponse] = Field(description="List of orders")


class OrderStatusUpdate(BaseModel):
    """Schema for PUT /admin/orders/{order_id}/status."""

    status: OrderStatus = Field(description="Target status")
    force: bool = Field(
        default=False,
        description="Write the status even if the transition graph does not allow it",
    )


class PrintablePdfUpdate(BaseModel):
    """Schema for PUT /admin/orders/{order_id}/printable-pdf."""

    printable_pdf_url: str = Field(min_length=1, description="Location of the print-ready PDF")


class AdminOrderListResponse(BaseModel):
    """Paginated order list for the admin panel."""

    orders: list[OrderResponse]
    pagination: PaginationMeta


class OrderStatsResponse(BaseModel):
    """Platform-wide order statistics."""

    total_sales: Decimal = Field(description="Sum of totals over non-rejected orders")
    verified_orders: int = Field(description="Orders past approval and not rejected")
    delivered_orders: int = Field(description="Orders currently delivered")
    buyers: int = Field(description="Distinct users with at least one order")
