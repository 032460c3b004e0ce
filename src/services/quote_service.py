"""Quote aggregation: unit pricing plus carrier rates."""

import logging

from src.core.config import Settings, get_settings
from src.schemas.quote import QuoteLine, QuoteRequest, QuoteResponse, QuoteSummary
from src.services.pricing_service import PricingService, compute_costs, quantize_money
from src.services.shipping_service import ShippingRateService

logger = logging.getLogger(__name__)


class QuoteService:
    """Builds a priced quote for a prospective order.

    Shipping in a quote is the first carrier option as returned. Order
    creation charges the configured flat fee instead, so a quote and the
    order placed from it can differ by the shipping amount.
    """

    def __init__(
        self,
        pricing_service: PricingService | None = None,
        shipping_service: ShippingRateService | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize quote service.

        Args:
            pricing_service: Optional pricing service for testing.
            shipping_service: Optional shipping service for testing.
            settings: Optional settings for testing.
        """
        self.settings = settings or get_settings()
        self.pricing = pricing_service or PricingService(settings=self.settings)
        self.shipping = shipping_service or ShippingRateService(settings=self.settings)

    async def get_quote(self, request: QuoteRequest) -> QuoteResponse:
        """Price cards and boxes, fetch rates and total everything up.

        Args:
            request: Card type, quantities and destination.

        Returns:
            QuoteResponse: Rounded summary and every shipping option.

        Raises:
            NotFoundError: If pricing or shipping options are not found.
            UpstreamGatewayError: If the carrier is unavailable.
        """
        unit_price = await self.pricing.calculate_price(
            request.card_type,
            request.deck_quantity,
            request.cards_per_deck,
        )
        options = await self.shipping.get_rates(request.shipping_details)
        selected = options[0]

        costs = compute_costs(
            unit_price,
            request.deck_quantity,
            shipping=selected.price,
            tax_rate=self.settings.tax_rate,
        ).rounded()

        logger.info(
            "Quote for %s x%s (%s cards): total %s via %s",
            request.card_type,
            request.deck_quantity,
            request.cards_per_deck,
            costs.total,
            selected.service_name,
        )

        summary = QuoteSummary(
            cards=QuoteLine(
                label=f"Cards (${quantize_money(unit_price.unit_card_price)} Per Deck)",
                value=costs.cards_subtotal,
            ),
            boxes=QuoteLine(
                label=f"Boxes (${quantize_money(unit_price.unit_box_price)} Per Box)",
                value=costs.boxes_subtotal,
            ),
            shipping=QuoteLine(label=selected.service_name, value=costs.shipping),
            tax=QuoteLine(label="Tax", value=costs.tax),
            total=QuoteLine(label="Total", value=costs.total),
        )
        return QuoteResponse(summary=summary, shipping_options=options)
