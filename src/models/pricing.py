"""Price configuration type definitions for database operations."""

from datetime import datetime
from typing import TypedDict


class DeckTierRow(TypedDict):
    """One deck-quantity tier of a card type.

    deck_range is "min-max" or "min+"; cards maps "min-max" cards-per-deck
    ranges to a per-deck price.
    """

    deck_range: str
    cards: dict[str, float | str]
    box: float | str


class CardTypeRuleRow(TypedDict, total=False):
    """Pricing rule for one card type."""

    card_type: str
    size: str
    pricing: list[DeckTierRow]


class PriceConfiguration(TypedDict):
    """price_configurations table row representation."""

    config_key: str
    pricing_table: list[CardTypeRuleRow]
    created_at: datetime
    updated_at: datetime
