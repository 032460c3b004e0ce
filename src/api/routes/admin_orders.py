"""Administrative order API routes."""

from typing import Annotated

from fastapi import APIRouter, Query

from src.api.deps import AdminUser, OrderLifecycleServiceDep, OrderServiceDep
from src.models.order import OrderStatus
from src.schemas.common import PaginationMeta
from src.schemas.order import (
    AdminOrderListResponse,
    OrderResponse,
    OrderStatsResponse,
    OrderStatusUpdate,
    PrintablePdfUpdate,
)
from src.services.order_id_service import normalize_order_id

router = APIRouter(prefix="/admin/orders", tags=["admin"])


@router.get(
    "",
    response_model=AdminOrderListResponse,
    summary="List all orders",
    description="Paginated order list with order-id search and status filter.",
)
async def list_orders(
    _admin: AdminUser,
    service: OrderServiceDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    search: Annotated[str | None, Query(description="Case-insensitive order id substring")] = None,
    order_status: Annotated[OrderStatus | None, Query(alias="status")] = None,
) -> AdminOrderListResponse:
    """List orders across all users."""
    result = await service.list_orders(page=page, limit=limit, search=search, order_status=order_status)
    return AdminOrderListResponse(
        orders=[OrderResponse.model_validate(order) for order in result["orders"]],
        pagination=PaginationMeta(**result["pagination"]),
    )


@router.get(
    "/stats",
    response_model=OrderStatsResponse,
    summary="Order statistics",
    description="Total sales, verified and delivered order counts, and distinct buyers.",
)
async def get_order_stats(_admin: AdminUser, service: OrderServiceDep) -> OrderStatsResponse:
    """Compute platform-wide order statistics."""
    return OrderStatsResponse(**await service.get_stats())


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get any order",
    responses={404: {"description": "Order not found"}},
)
async def get_order(order_id: str, _admin: AdminUser, service: OrderServiceDep) -> OrderResponse:
    """Get a single order regardless of owner."""
    order = await service.get_order(normalize_order_id(order_id))
    return OrderResponse.model_validate(order)


@router.put(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Update order status",
    description=(
        "Moves the order along its fulfillment graph. Entering Shipped without a "
        "tracking number creates the carrier shipment first."
    ),
    responses={
        404: {"description": "Order not found"},
        409: {"description": "Transition not allowed, or order changed concurrently"},
        502: {"description": "Carrier failure; order unchanged"},
    },
)
async def update_order_status(
    order_id: str,
    data: OrderStatusUpdate,
    _admin: AdminUser,
    service: OrderLifecycleServiceDep,
) -> OrderResponse:
    """Apply an administrative status update.

    Args:
        order_id: Order to update.
        data: Target status and force flag.
        _admin: The authenticated admin.
        service: Lifecycle service.

    Returns:
        OrderResponse: The updated order.
    """
    order = await service.update_status(normalize_order_id(order_id), data.status, force=data.force)
    return OrderResponse.model_validate(order)


@router.put(
    "/{order_id}/printable-pdf",
    response_model=OrderResponse,
    summary="Attach printable PDF",
    responses={404: {"description": "Order not found"}},
)
async def set_printable_pdf(
    order_id: str,
    data: PrintablePdfUpdate,
    _admin: AdminUser,
    service: OrderServiceDep,
) -> OrderResponse:
    """Record where the print-ready file for an order lives."""
    order = await service.set_printable_pdf(normalize_order_id(order_id), data.printable_pdf_url)
    return OrderResponse.model_validate(order)
