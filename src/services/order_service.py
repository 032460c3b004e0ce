"""Order creation and order reads."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import Client

from src.api.middleware.error_handler import (
    DuplicateTransactionError,
    NotFoundError,
    PaymentVerificationFailedError,
)
from src.core.config import Settings, get_settings
from src.core.supabase import UNIQUE_VIOLATION, get_supabase_client
from src.models.order import Order, OrderCreate, OrderStatus, OrderUpdate
from src.schemas.common import PaginationMeta
from src.schemas.order import OrderCreateRequest
from src.services.order_id_service import OrderIdAllocator
from src.services.payment_service import PaymentService
from src.services.pricing_service import CostBreakdown, PricingService, compute_costs, quantize_money

logger = logging.getLogger(__name__)

# Statuses that do not count as a verified (approved) order
UNVERIFIED_STATUSES = frozenset({OrderStatus.PENDING_APPROVAL.value, OrderStatus.REJECTED.value})


def status_entry(order_status: OrderStatus, at: datetime | None = None) -> dict[str, str]:
    """Build one status_history entry."""
    return {
        "status": order_status.value,
        "date": (at or datetime.now(timezone.utc)).isoformat(),
    }


class OrderService:
    """Service for placing orders and reading them back."""

    TABLE = "orders"

    def __init__(
        self,
        client: Client | None = None,
        pricing_service: PricingService | None = None,
        payment_service: PaymentService | None = None,
        order_id_allocator: OrderIdAllocator | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize order service.

        Args:
            client: Optional Supabase client for testing.
            pricing_service: Optional pricing service for testing.
            payment_service: Optional payment service for testing.
            order_id_allocator: Optional order id allocator for testing.
            settings: Optional settings for testing.
        """
        self.settings = settings or get_settings()
        self.client = client or get_supabase_client()
        self.pricing = pricing_service or PricingService(client=self.client, settings=self.settings)
        self.payments = payment_service or PaymentService(settings=self.settings)
        self.order_ids = order_id_allocator or OrderIdAllocator(client=self.client)

    async def calculate_order_costs(self, data: OrderCreateRequest) -> CostBreakdown:
        """Recompute costs for an order from the price table.

        Only the first line item is priced. Shipping is the configured
        flat fee, not a carrier rate.
        """
        item = data.items[0]
        if len(data.items) > 1:
            logger.warning("Order has %d items; only the first is priced", len(data.items))

        unit_price = await self.pricing.calculate_price(
            item.card_stock,
            item.deck_quantity,
            item.cards_per_deck,
        )
        return compute_costs(
            unit_price,
            item.deck_quantity,
            shipping=self.settings.order_flat_shipping_fee,
            tax_rate=self.settings.tax_rate,
        )

    async def create_order(self, user_id: UUID, data: OrderCreateRequest) -> Order:
        """Price, verify payment, allocate an id and persist a new order.

        Each step waits on the previous one. Nothing is written unless
        payment verification succeeds.

        Args:
            user_id: Owning account.
            data: Validated order request.

        Returns:
            Order: The persisted order in Pending Approval.

        Raises:
            NotFoundError: If the first item cannot be priced.
            UnsupportedPaymentMethodError: If payment_method is unknown.
            PaymentVerificationFailedError: If the gateway does not confirm payment.
            DuplicateTransactionError: If transaction_id was already used.
            UpstreamGatewayError: If the gateway cannot be reached.
        """
        costs = await self.calculate_order_costs(data)

        verified = await self.payments.verify(data.payment_method, data.transaction_id, costs.total)
        if not verified:
            logger.warning(
                "Payment verification failed for user %s (%s %s)",
                user_id,
                data.payment_method,
                data.transaction_id,
            )
            raise PaymentVerificationFailedError()

        order_id = await self.order_ids.next_order_id()
        now = datetime.now(timezone.utc)

        order_data: OrderCreate = {
            "order_id": order_id,
            "user_id": str(user_id),
            "items": [item.model_dump() for item in data.items],
            "shipping_details": data.shipping_details.model_dump(),
            "costs": costs.to_snapshot(),
            "payment_method": data.payment_method.strip().lower(),
            "transaction_id": data.transaction_id,
            "order_status": OrderStatus.PENDING_APPROVAL.value,
            "status_history": [status_entry(OrderStatus.PENDING_APPROVAL, now)],
        }

        try:
            response = self.client.table(self.TABLE).insert(order_data).execute()
        except PostgrestAPIError as e:
            if e.code == UNIQUE_VIOLATION and "transaction_id" in (e.message or ""):
                logger.warning("Transaction %s was already used for another order", data.transaction_id)
                raise DuplicateTransactionError(data.transaction_id) from e
            raise

        order = response.data[0]
        logger.info("Order %s created for user %s, total %s", order_id, user_id, costs.total)
        return order

    async def list_orders_for_user(self, user_id: UUID) -> list[Order]:
        """List a user's orders, newest first."""
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("user_id", str(user_id))
            .order("created_at", desc=True)
            .execute()
        )
        return response.data or []

    async def get_order_for_user(self, order_id: str, user_id: UUID) -> Order:
        """Get one of the user's orders.

        Raises:
            NotFoundError: If the order does not exist or belongs to someone else.
        """
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("order_id", order_id)
            .eq("user_id", str(user_id))
            .maybe_single()
            .execute()
        )
        if not (response and response.data):
            raise NotFoundError("Order not found")
        return response.data

    async def get_order(self, order_id: str) -> Order:
        """Get any order by its order id.

        Raises:
            NotFoundError: If the order does not exist.
        """
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("order_id", order_id)
            .maybe_single()
            .execute()
        )
        if not (response and response.data):
            raise NotFoundError("Order not found")
        return response.data

    async def list_orders(
        self,
        page: int = 1,
        limit: int = 10,
        search: str | None = None,
        order_status: OrderStatus | None = None,
    ) -> dict[str, Any]:
        """List all orders for the admin panel.

        Args:
            page: 1-based page number.
            limit: Page size.
            search: Case-insensitive substring of the order id.
            order_status: Only orders currently in this status.

        Returns:
            dict: ``orders`` and ``pagination`` (total, page, limit, total_pages).
        """
        start = (page - 1) * limit
        query = self.client.table(self.TABLE).select("*", count="exact")
        if search:
            query = query.ilike("order_id", f"%{search}%")
        if order_status:
            query = query.eq("order_status", order_status.value)

        response = query.order("created_at", desc=True).range(start, start + limit - 1).execute()
        total = response.count or 0
        return {
            "orders": response.data or [],
            "pagination": PaginationMeta.for_page(total, page, limit).model_dump(),
        }

    async def set_printable_pdf(self, order_id: str, printable_pdf_url: str) -> Order:
        """Attach the print-ready file location to an order.

        Raises:
            NotFoundError: If the order does not exist.
        """
        update: OrderUpdate = {"printable_pdf_url": printable_pdf_url}
        response = (
            self.client.table(self.TABLE)
            .update(update)
            .eq("order_id", order_id)
            .execute()
        )
        if not response.data:
            raise NotFoundError("Order not found")
        logger.info("Printable PDF attached to order %s", order_id)
        return response.data[0]

    async def get_stats(self) -> dict[str, Any]:
        """Compute platform-wide order statistics.

        Returns:
            dict: total_sales (non-rejected orders), verified_orders,
            delivered_orders and buyers (distinct users).
        """
        response = self.client.table(self.TABLE).select("user_id, order_status, costs").execute()
        rows = response.data or []

        total_sales = sum(
            (
                Decimal(str(row["costs"]["total"]))
                for row in rows
                if row["order_status"] != OrderStatus.REJECTED.value
            ),
            Decimal("0"),
        )
        return {
            "total_sales": quantize_money(total_sales),
            "verified_orders": sum(1 for row in rows if row["order_status"] not in UNVERIFIED_STATUSES),
            "delivered_orders": sum(1 for row in rows if row["order_status"] == OrderStatus.DELIVERED.value),
            "buyers": len({row["user_id"] for row in rows}),
        }
