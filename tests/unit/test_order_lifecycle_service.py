"""Unit tests for order status transitions."""

import asyncio
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.api.middleware.error_handler import (
    CarrierUnavailableError,
    InvalidStatusTransitionError,
    NotFoundError,
    OrderConflictError,
)
from src.models.order import ORDER_STATUS_TRANSITIONS, TERMINAL_STATUSES, OrderStatus, can_transition
from src.services.order_lifecycle_service import OrderLifecycleService
from src.services.shipping_service import ShipmentResult
from tests.conftest import make_order_row

DOCUMENTED_TRANSITIONS = [
    (OrderStatus.PENDING_APPROVAL, OrderStatus.PROCESSING),
    (OrderStatus.PENDING_APPROVAL, OrderStatus.REJECTED),
    (OrderStatus.PROCESSING, OrderStatus.PRINTING),
    (OrderStatus.PRINTING, OrderStatus.SHIPPED),
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
    (OrderStatus.DELIVERED, OrderStatus.COMPLETED),
]


class FakeOrdersTable:
    """In-memory stand-in for the orders table used by the lifecycle."""

    def __init__(self, row: dict[str, Any]) -> None:
        self.row = row
        self.updates: list[dict[str, Any]] = []

    def update(self, values: dict[str, Any]) -> "FakeOrdersTable":
        self._pending = values
        self._filters: dict[str, Any] = {}
        return self

    def eq(self, column: str, value: Any) -> "FakeOrdersTable":
        self._filters[column] = value
        return self

    def is_(self, column: str, value: str) -> "FakeOrdersTable":
        self._filters[column] = None if value == "null" else value
        return self

    def execute(self) -> MagicMock:
        if any(self.row.get(column) != value for column, value in self._filters.items()):
            return MagicMock(data=[])
        self.row = {**self.row, **self._pending}
        self.updates.append(self._pending)
        return MagicMock(data=[self.row])


def make_service(row: dict[str, Any], shipping: MagicMock | None = None) -> tuple[OrderLifecycleService, FakeOrdersTable]:
    table = FakeOrdersTable(row)
    client = MagicMock()
    client.table.return_value = table

    orders = MagicMock()
    orders.get_order = AsyncMock(side_effect=lambda order_id: table.row)

    if shipping is None:
        shipping = MagicMock()
        shipping.create_shipment = AsyncMock(
            return_value=ShipmentResult(tracking_number="1234567890", label_path=Path("uploads/labels/x.pdf"))
        )
    return OrderLifecycleService(client=client, order_service=orders, shipping_service=shipping), table


class TestTransitionGraph:
    """Tests for the status transition map."""

    @pytest.mark.parametrize(("current", "target"), DOCUMENTED_TRANSITIONS)
    def test_documented_transitions_are_allowed(self, current: OrderStatus, target: OrderStatus) -> None:
        """Every documented edge is allowed."""
        assert can_transition(current, target)

    def test_terminal_statuses(self) -> None:
        """Rejected and Completed lead nowhere."""
        assert TERMINAL_STATUSES == {OrderStatus.REJECTED, OrderStatus.COMPLETED}

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (OrderStatus.PENDING_APPROVAL, OrderStatus.SHIPPED),
            (OrderStatus.REJECTED, OrderStatus.PROCESSING),
            (OrderStatus.COMPLETED, OrderStatus.PENDING_APPROVAL),
            (OrderStatus.SHIPPED, OrderStatus.PRINTING),
        ],
    )
    def test_undocumented_transitions_are_refused(self, current: OrderStatus, target: OrderStatus) -> None:
        """Skipping ahead or moving backwards is not allowed."""
        assert not can_transition(current, target)

    def test_every_status_has_an_entry(self) -> None:
        """The map covers the whole enum."""
        assert set(ORDER_STATUS_TRANSITIONS) == set(OrderStatus)


class TestUpdateStatus:
    """Tests for OrderLifecycleService.update_status."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("current", "target"), DOCUMENTED_TRANSITIONS)
    async def test_documented_transition_appends_one_history_entry(
        self, current: OrderStatus, target: OrderStatus
    ) -> None:
        """Each accepted transition writes the status and one history entry."""
        row = make_order_row(order_status=current.value)
        service, table = make_service(row)

        order = await service.update_status("#ORD-2026-00042", target)

        assert order["order_status"] == target.value
        assert len(order["status_history"]) == 2
        assert order["status_history"][-1]["status"] == target.value

    @pytest.mark.asyncio
    async def test_full_lifecycle(self) -> None:
        """An order walks from Pending Approval to Completed."""
        service, table = make_service(make_order_row())

        for target in (
            OrderStatus.PROCESSING,
            OrderStatus.PRINTING,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
            OrderStatus.COMPLETED,
        ):
            await service.update_status("#ORD-2026-00042", target)

        assert table.row["order_status"] == "Completed"
        assert [entry["status"] for entry in table.row["status_history"]] == [
            "Pending Approval",
            "Processing",
            "Printing",
            "Shipped",
            "Delivered",
            "Completed",
        ]
        assert table.row["dhl_tracking_number"] == "1234567890"

    @pytest.mark.asyncio
    async def test_invalid_transition_writes_nothing(self) -> None:
        """Illegal moves raise 409 and leave the order untouched."""
        service, table = make_service(make_order_row())

        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            await service.update_status("#ORD-2026-00042", OrderStatus.DELIVERED)

        assert exc_info.value.status_code == 409
        assert table.updates == []

    @pytest.mark.asyncio
    async def test_force_bypasses_graph_but_records_history(self) -> None:
        """Forced updates are written and still logged in history."""
        service, table = make_service(make_order_row(order_status="Completed"))

        order = await service.update_status("#ORD-2026-00042", OrderStatus.PROCESSING, force=True)

        assert order["order_status"] == "Processing"
        assert order["status_history"][-1]["status"] == "Processing"

    @pytest.mark.asyncio
    async def test_shipped_creates_shipment_and_stores_tracking(self) -> None:
        """Entering Shipped without tracking creates one shipment."""
        service, table = make_service(make_order_row(order_status="Printing"))

        order = await service.update_status("#ORD-2026-00042", OrderStatus.SHIPPED)

        service.shipping.create_shipment.assert_awaited_once()
        assert order["dhl_tracking_number"] == "1234567890"

    @pytest.mark.asyncio
    async def test_shipped_twice_creates_one_shipment(self) -> None:
        """Re-entering Shipped never creates a second shipment."""
        service, table = make_service(make_order_row(order_status="Printing"))

        await service.update_status("#ORD-2026-00042", OrderStatus.SHIPPED)
        order = await service.update_status("#ORD-2026-00042", OrderStatus.SHIPPED)

        service.shipping.create_shipment.assert_awaited_once()
        assert order["dhl_tracking_number"] == "1234567890"
        assert "dhl_tracking_number" not in table.updates[-1]
        assert len(order["status_history"]) == 3

    @pytest.mark.asyncio
    async def test_carrier_failure_leaves_order_unchanged(self) -> None:
        """A failed shipment means no status change and no history entry."""
        shipping = MagicMock()
        shipping.create_shipment = AsyncMock(side_effect=CarrierUnavailableError("HTTP 503", retryable=True))
        row = make_order_row(order_status="Printing")
        service, table = make_service(row, shipping=shipping)

        with pytest.raises(CarrierUnavailableError) as exc_info:
            await service.update_status("#ORD-2026-00042", OrderStatus.SHIPPED)

        assert exc_info.value.status_code == 502
        assert table.row["shipment_requested_at"] is None
        assert all("order_status" not in update for update in table.updates)
        assert table.row["order_status"] == "Printing"
        assert table.row["dhl_tracking_number"] is None
        assert len(table.row["status_history"]) == 1

    @pytest.mark.asyncio
    async def test_retry_after_carrier_failure_creates_shipment(self) -> None:
        """Re-applying Shipped after a failure tries the carrier again."""
        shipping = MagicMock()
        shipping.create_shipment = AsyncMock(
            side_effect=[
                CarrierUnavailableError("timeout"),
                ShipmentResult(tracking_number="555", label_path=None),
            ]
        )
        service, table = make_service(make_order_row(order_status="Printing"), shipping=shipping)

        with pytest.raises(CarrierUnavailableError):
            await service.update_status("#ORD-2026-00042", OrderStatus.SHIPPED)
        order = await service.update_status("#ORD-2026-00042", OrderStatus.SHIPPED)

        assert order["dhl_tracking_number"] == "555"
        assert shipping.create_shipment.await_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_change_is_a_conflict(self) -> None:
        """If the status moved underneath us the update is refused."""
        service, table = make_service(make_order_row())
        stale = dict(table.row)
        table.row = {**table.row, "order_status": "Rejected"}
        service.orders.get_order = AsyncMock(return_value=stale)

        with pytest.raises(OrderConflictError):
            await service.update_status("#ORD-2026-00042", OrderStatus.PROCESSING)

    @pytest.mark.asyncio
    async def test_missing_order(self) -> None:
        """Unknown orders are a 404."""
        service, _ = make_service(make_order_row())
        service.orders.get_order = AsyncMock(side_effect=NotFoundError("Order not found"))

        with pytest.raises(NotFoundError):
            await service.update_status("#ORD-2026-99999", OrderStatus.PROCESSING)


class TestShipmentClaim:
    """Tests for the in-flight shipment marker."""

    @pytest.mark.asyncio
    async def test_concurrent_shipped_updates_create_one_shipment(self) -> None:
        """Two admins shipping the same order at once produce one carrier shipment."""

        async def create_shipment(order: dict[str, Any]) -> ShipmentResult:
            await asyncio.sleep(0)
            return ShipmentResult(tracking_number="1234567890", label_path=None)

        shipping = MagicMock()
        shipping.create_shipment = AsyncMock(side_effect=create_shipment)
        service, table = make_service(make_order_row(order_status="Printing"), shipping=shipping)

        async def read_order(order_id: str) -> dict[str, Any]:
            snapshot = dict(table.row)
            await asyncio.sleep(0)
            return snapshot

        service.orders.get_order = AsyncMock(side_effect=read_order)

        results = await asyncio.gather(
            service.update_status("#ORD-2026-00042", OrderStatus.SHIPPED),
            service.update_status("#ORD-2026-00042", OrderStatus.SHIPPED),
            return_exceptions=True,
        )

        assert shipping.create_shipment.await_count == 1
        conflicts = [result for result in results if isinstance(result, OrderConflictError)]
        assert len(conflicts) == 1
        assert table.row["order_status"] == "Shipped"
        assert table.row["dhl_tracking_number"] == "1234567890"
        assert len(table.row["status_history"]) == 2

    @pytest.mark.asyncio
    async def test_held_claim_is_a_conflict(self) -> None:
        """An order whose shipment is already in flight is not shipped again."""
        row = make_order_row(order_status="Printing", shipment_requested_at="2026-10-19T09:00:00+00:00")
        service, table = make_service(row)

        with pytest.raises(OrderConflictError):
            await service.update_status("#ORD-2026-00042", OrderStatus.SHIPPED)

        service.shipping.create_shipment.assert_not_awaited()
        assert table.row["order_status"] == "Printing"

    @pytest.mark.asyncio
    async def test_successful_shipment_keeps_the_marker(self) -> None:
        """The claim timestamp stays on the shipped order."""
        service, table = make_service(make_order_row(order_status="Printing"))

        order = await service.update_status("#ORD-2026-00042", OrderStatus.SHIPPED)

        assert order["shipment_requested_at"] is not None
        assert table.updates[0].keys() == {"shipment_requested_at"}
