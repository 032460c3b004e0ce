"""Order status transitions and the shipment side effect."""

import logging
from datetime import datetime, timezone

from supabase import Client

from src.api.middleware.error_handler import InvalidStatusTransitionError, OrderConflictError
from src.core.supabase import get_supabase_client
from src.models.order import Order, OrderStatus, OrderUpdate, can_transition
from src.services.order_service import OrderService, status_entry
from src.services.shipping_service import ShippingRateService

logger = logging.getLogger(__name__)


class OrderLifecycleService:
    """Applies administrative status updates to orders.

    Every accepted update appends exactly one status_history entry.
    Entering Shipped without a tracking number claims the order, then
    creates the carrier shipment; if that fails the claim is released and
    the order is left as it was.
    """

    TABLE = "orders"

    def __init__(
        self,
        client: Client | None = None,
        order_service: OrderService | None = None,
        shipping_service: ShippingRateService | None = None,
    ) -> None:
        """Initialize lifecycle service.

        Args:
            client: Optional Supabase client for testing.
            order_service: Optional order service for testing.
            shipping_service: Optional shipping service for testing.
        """
        self.client = client or get_supabase_client()
        self.orders = order_service or OrderService(client=self.client)
        self.shipping = shipping_service or ShippingRateService()

    def check_transition(self, order_id: str, current: OrderStatus, target: OrderStatus, force: bool) -> None:
        """Raise unless target is reachable from current.

        Raises:
            InvalidStatusTransitionError: If the move is not allowed and not forced.
        """
        if can_transition(current, target):
            return
        if force:
            logger.warning(
                "Forcing order %s from %s to %s outside the transition graph",
                order_id,
                current.value,
                target.value,
            )
            return
        raise InvalidStatusTransitionError(current.value, target.value)

    async def update_status(self, order_id: str, target: OrderStatus, force: bool = False) -> Order:
        """Move an order to a new status.

        Args:
            order_id: Order to update.
            target: Status to move to.
            force: Write the status even if the graph does not allow it.

        Returns:
            Order: The updated order.

        Raises:
            NotFoundError: If the order does not exist.
            InvalidStatusTransitionError: If the transition is not allowed.
            UpstreamGatewayError: If shipment creation fails; nothing is written.
            OrderConflictError: If the order changed status while being updated,
                or another update is already creating its shipment.
        """
        order = await self.orders.get_order(order_id)
        current = OrderStatus(order["order_status"])
        self.check_transition(order_id, current, target, force)

        updates: OrderUpdate = {
            "order_status": target.value,
            "status_history": [*(order.get("status_history") or []), status_entry(target)],
        }

        if target is OrderStatus.SHIPPED and not order.get("dhl_tracking_number"):
            self.claim_shipment(order_id, current)
            try:
                shipment = await self.shipping.create_shipment(order)
            except Exception:
                self.release_shipment(order_id)
                raise
            updates["dhl_tracking_number"] = shipment.tracking_number

        response = (
            self.client.table(self.TABLE)
            .update(updates)
            .eq("order_id", order_id)
            .eq("order_status", current.value)
            .execute()
        )
        if not response.data:
            if "dhl_tracking_number" in updates:
                logger.error(
                    "Order %s changed during shipment creation; tracking number %s was not stored",
                    order_id,
                    updates["dhl_tracking_number"],
                )
            raise OrderConflictError(order_id)

        logger.info("Order %s status changed: %s -> %s", order_id, current.value, target.value)
        return response.data[0]

    def claim_shipment(self, order_id: str, current: OrderStatus) -> None:
        """Mark the order as having a shipment in flight.

        The claim only succeeds while the order is still in ``current`` and
        no other update holds it, so two concurrent moves to Shipped create
        at most one carrier shipment.

        Raises:
            OrderConflictError: If the status moved or the claim is already held.
        """
        claim: OrderUpdate = {"shipment_requested_at": datetime.now(timezone.utc).isoformat()}
        response = (
            self.client.table(self.TABLE)
            .update(claim)
            .eq("order_id", order_id)
            .eq("order_status", current.value)
            .is_("shipment_requested_at", "null")
            .execute()
        )
        if not response.data:
            logger.warning("Order %s already has a shipment in progress or changed status", order_id)
            raise OrderConflictError(order_id)

    def release_shipment(self, order_id: str) -> None:
        """Drop the in-flight marker so a later update can retry the carrier."""
        release: OrderUpdate = {"shipment_requested_at": None}
        self.client.table(self.TABLE).update(release).eq("order_id", order_id).execute()
