"""Customer order API routes."""

from fastapi import APIRouter, status

from src.api.deps import CurrentUser, OrderServiceDep
from src.schemas.order import OrderCreateRequest, OrderListResponse, OrderResponse
from src.services.order_id_service import normalize_order_id

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place an order",
    description=(
        "Recomputes costs server-side, verifies the payment with the gateway "
        "and persists the order in Pending Approval."
    ),
    responses={
        400: {"description": "Invalid input or unsupported payment method"},
        402: {"description": "Payment verification failed"},
        409: {"description": "Payment transaction already used"},
        502: {"description": "Payment gateway unavailable"},
    },
)
async def create_order(
    data: OrderCreateRequest,
    user: CurrentUser,
    service: OrderServiceDep,
) -> OrderResponse:
    """Create an order for the authenticated user.

    Args:
        data: Items, shipping details and payment reference.
        user: The authenticated user.
        service: Order service.

    Returns:
        OrderResponse: The created order.
    """
    order = await service.create_order(user.user_id, data)
    return OrderResponse.model_validate(order)


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List my orders",
    description="Returns all orders for the authenticated user, newest first.",
)
async def list_orders(user: CurrentUser, service: OrderServiceDep) -> OrderListResponse:
    """List the current user's orders."""
    orders = await service.list_orders_for_user(user.user_id)
    return OrderListResponse(items=[OrderResponse.model_validate(order) for order in orders])


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order by ID",
    description="Returns one of the caller's orders. Order ids contain '#', so clients send it URL-encoded (%23) or omit it.",
    responses={404: {"description": "Order not found or not owned by the caller"}},
)
async def get_order(order_id: str, user: CurrentUser, service: OrderServiceDep) -> OrderResponse:
    """Get a single order owned by the caller.

    Args:
        order_id: Order id, e.g. ORD-2026-00042.
        user: The authenticated user.
        service: Order service.

    Returns:
        OrderResponse: The order data.
    """
    order = await service.get_order_for_user(normalize_order_id(order_id), user.user_id)
    return OrderResponse.model_validate(order)
