"""Quote API routes."""

from fastapi import APIRouter

from src.api.deps import QuoteServiceDep
from src.schemas.quote import QuoteRequest, QuoteResponse

router = APIRouter(prefix="/quote", tags=["quotes"])


@router.post(
    "",
    response_model=QuoteResponse,
    summary="Get a price and shipping quote",
    description="Prices cards and boxes from the active price table and fetches carrier rates. Nothing is persisted.",
    responses={
        400: {"description": "Missing or invalid input"},
        404: {"description": "No pricing or no shipping options found"},
        502: {"description": "Carrier unavailable"},
    },
)
async def get_quote(data: QuoteRequest, service: QuoteServiceDep) -> QuoteResponse:
    """Build a quote for a prospective order.

    Args:
        data: Card type, quantities and destination.
        service: Quote service.

    Returns:
        QuoteResponse: Rounded summary and all shipping options.
    """
    return await service.get_quote(data)
