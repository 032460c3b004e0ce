"""Price table lookup and cost arithmetic."""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from pydantic import ValidationError as PydanticValidationError
from supabase import Client

from src.api.middleware.error_handler import (
    CardPriceNotFoundError,
    CardTypeNotFoundError,
    ConfigurationError,
    TierNotFoundError,
)
from src.core.config import Settings, get_settings
from src.core.supabase import get_supabase_client
from src.models.pricing import PriceConfiguration
from src.schemas.pricing import DeckTier, PriceTable, QuantityRange, UnitPrice

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    """Round a currency amount to cents (half up).

    Only call this at presentation or gateway boundaries, never on an
    intermediate value that feeds further arithmetic.
    """
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CostBreakdown:
    """Unrounded cost components for a priced line item."""

    cards_subtotal: Decimal
    boxes_subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal

    def rounded(self) -> "CostBreakdown":
        """Each component rounded to cents independently."""
        return CostBreakdown(
            cards_subtotal=quantize_money(self.cards_subtotal),
            boxes_subtotal=quantize_money(self.boxes_subtotal),
            shipping=quantize_money(self.shipping),
            tax=quantize_money(self.tax),
            total=quantize_money(self.total),
        )

    def to_snapshot(self) -> dict[str, str]:
        """Exact decimal strings for the orders.costs column."""
        return {
            "cards_subtotal": str(self.cards_subtotal),
            "boxes_subtotal": str(self.boxes_subtotal),
            "shipping": str(self.shipping),
            "tax": str(self.tax),
            "total": str(self.total),
        }


def compute_costs(
    unit_price: UnitPrice,
    deck_quantity: int,
    shipping: Decimal,
    tax_rate: Decimal,
) -> CostBreakdown:
    """Derive subtotals, tax and total from per-deck prices.

    tax = (cards + boxes + shipping) * tax_rate, total = cards + boxes +
    shipping + tax. Nothing is rounded here.
    """
    cards_subtotal = unit_price.unit_card_price * deck_quantity
    boxes_subtotal = unit_price.unit_box_price * deck_quantity
    taxable = cards_subtotal + boxes_subtotal + shipping
    tax = taxable * tax_rate
    return CostBreakdown(
        cards_subtotal=cards_subtotal,
        boxes_subtotal=boxes_subtotal,
        shipping=shipping,
        tax=tax,
        total=taxable + tax,
    )


class PricingService:
    """Resolves per-deck prices against the active price table."""

    TABLE = "price_configurations"

    def __init__(self, client: Client | None = None, settings: Settings | None = None) -> None:
        """Initialize pricing service.

        Args:
            client: Optional Supabase client for testing.
            settings: Optional settings for testing.
        """
        self.client = client or get_supabase_client()
        self.settings = settings or get_settings()

    async def get_price_table(self, config_key: str | None = None) -> PriceTable:
        """Load a price table from storage.

        Args:
            config_key: Table version to load; defaults to the configured one.

        Returns:
            PriceTable: The validated table.

        Raises:
            ConfigurationError: If the table is missing or malformed.
        """
        key = config_key or self.settings.pricing_config_key
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("config_key", key)
            .maybe_single()
            .execute()
        )
        row: PriceConfiguration | None = response.data if response and response.data else None
        if not row:
            raise ConfigurationError(f'Pricing configuration "{key}" not found in the database.')

        try:
            return PriceTable.model_validate(row)
        except PydanticValidationError as e:
            logger.error("Price table %s is malformed: %s", key, e)
            raise ConfigurationError(f'Pricing configuration "{key}" is malformed.') from e

    async def calculate_price(
        self,
        card_type: str,
        deck_quantity: int,
        cards_per_deck: int,
    ) -> UnitPrice:
        """Resolve the per-deck card and box price.

        Args:
            card_type: Card stock name, e.g. "Standard 300gsm Poker".
            deck_quantity: Number of decks ordered.
            cards_per_deck: Number of cards in each deck.

        Returns:
            UnitPrice: Matched per-deck prices and the ranges that matched.

        Raises:
            CardTypeNotFoundError: If the card type has no rule.
            TierNotFoundError: If no deck tier matches deck_quantity.
            CardPriceNotFoundError: If the tier has no price for cards_per_deck.
        """
        table = await self.get_price_table()
        return resolve_unit_price(table, card_type, deck_quantity, cards_per_deck)


def resolve_unit_price(
    table: PriceTable,
    card_type: str,
    deck_quantity: int,
    cards_per_deck: int,
) -> UnitPrice:
    """Pure lookup of per-deck prices in an already-loaded table."""
    rule = table.rule_for(card_type)
    if rule is None:
        raise CardTypeNotFoundError(card_type)

    tier = find_deck_tier(rule.pricing, deck_quantity)
    if tier is None:
        raise TierNotFoundError(deck_quantity)

    match = find_cards_price(tier, cards_per_deck)
    if match is None:
        raise CardPriceNotFoundError(cards_per_deck)

    cards_range, card_price = match
    return UnitPrice(
        unit_card_price=card_price,
        unit_box_price=tier.box,
        deck_range=tier.deck_range,
        cards_range=cards_range,
    )


def find_deck_tier(tiers: list[DeckTier], deck_quantity: int) -> DeckTier | None:
    """First tier, in authored order, whose deck range contains the quantity."""
    for tier in tiers:
        if QuantityRange.parse(tier.deck_range).contains(deck_quantity):
            return tier
    return None


def find_cards_price(tier: DeckTier, cards_per_deck: int) -> tuple[str, Decimal] | None:
    """First cards-per-deck range in the tier containing the count."""
    for range_key, price in tier.cards.items():
        if QuantityRange.parse(range_key, allow_open=False).contains(cards_per_deck):
            return range_key, price
    return None
