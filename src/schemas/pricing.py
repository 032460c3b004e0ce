"""Price table Pydantic schemas and quantity range parsing."""

import re
from dataclasses import dataclass
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_BOUNDED_RANGE = re.compile(r"^\s*(\d+)\s*-\s*(\d+)\s*$")
_OPEN_RANGE = re.compile(r"^\s*(\d+)\s*\+\s*$")


@dataclass(frozen=True)
class QuantityRange:
    """Inclusive quantity range parsed from "min-max" or "min+"."""

    minimum: int
    maximum: int | None = None

    @classmethod
    def parse(cls, text: str, allow_open: bool = True) -> "QuantityRange":
        """Parse a range string.

        Args:
            text: "min-max" (both inclusive) or, when allow_open, "min+".
            allow_open: Whether the open-ended form is accepted.

        Returns:
            QuantityRange: The parsed range.

        Raises:
            ValueError: If the text is not a well-formed range.
        """
        if "+" in text:
            match = _OPEN_RANGE.match(text)
            if not allow_open or not match:
                raise ValueError(f'Invalid range "{text}": expected "min-max"')
            return cls(minimum=int(match.group(1)))

        match = _BOUNDED_RANGE.match(text)
        if not match:
            raise ValueError(f'Invalid range "{text}": expected "min-max" or "min+"')
        minimum, maximum = int(match.group(1)), int(match.group(2))
        if minimum > maximum:
            raise ValueError(f'Invalid range "{text}": min is greater than max')
        return cls(minimum=minimum, maximum=maximum)

    @property
    def is_open(self) -> bool:
        return self.maximum is None

    def contains(self, quantity: int) -> bool:
        if self.maximum is None:
            return quantity >= self.minimum
        return self.minimum <= quantity <= self.maximum

    def overlaps(self, other: "QuantityRange") -> bool:
        self_max = self.maximum if self.maximum is not None else float("inf")
        other_max = other.maximum if other.maximum is not None else float("inf")
        return self.minimum <= other_max and other.minimum <= self_max

    def __str__(self) -> str:
        if self.maximum is None:
            return f"{self.minimum}+"
        return f"{self.minimum}-{self.maximum}"


class DeckTier(BaseModel):
    """Pricing bracket for a deck-quantity range."""

    model_config = ConfigDict(from_attributes=True)

    deck_range: str = Field(description='Deck quantity range, "min-max" or "min+"')
    cards: dict[str, Decimal] = Field(description='Per-deck card price keyed by "min-max" cards-per-deck range')
    box: Decimal = Field(ge=0, description="Per-deck box price")

    @field_validator("deck_range")
    @classmethod
    def validate_deck_range(cls, value: str) -> str:
        QuantityRange.parse(value)
        return value

    @field_validator("cards")
    @classmethod
    def validate_card_ranges(cls, value: dict[str, Decimal]) -> dict[str, Decimal]:
        if not value:
            raise ValueError("A tier needs at least one cards-per-deck price")
        for range_key, price in value.items():
            QuantityRange.parse(range_key, allow_open=False)
            if price < 0:
                raise ValueError(f'Price for "{range_key}" cannot be negative')
        return value

    @property
    def quantity_range(self) -> QuantityRange:
        return QuantityRange.parse(self.deck_range)


class CardTypeRule(BaseModel):
    """All deck tiers for one card type, in authored order."""

    model_config = ConfigDict(from_attributes=True)

    card_type: str = Field(min_length=1, description='Card stock name, e.g. "Standard 300gsm Poker"')
    size: str | None = Field(default=None, description='Card dimensions, e.g. "63x88mm"')
    pricing: list[DeckTier] = Field(default_factory=list, description="Deck tiers in match order")


class PriceTable(BaseModel):
    """A versioned price table keyed by config_key."""

    model_config = ConfigDict(from_attributes=True)

    config_key: str = Field(description="Version key of this table")
    pricing_table: list[CardTypeRule] = Field(default_factory=list, description="Rules per card type")

    @model_validator(mode="after")
    def validate_unique_card_types(self) -> "PriceTable":
        seen: set[str] = set()
        for rule in self.pricing_table:
            if rule.card_type in seen:
                raise ValueError(f'Duplicate card type "{rule.card_type}"')
            seen.add(rule.card_type)
        return self

    def rule_for(self, card_type: str) -> CardTypeRule | None:
        """Return the rule for a card type, or None."""
        for rule in self.pricing_table:
            if rule.card_type == card_type:
                return rule
        return None

    def find_overlaps(self) -> list[str]:
        """Describe every pair of overlapping ranges.

        Tiers are matched first-wins, so overlaps are authoring mistakes
        rather than lookup errors.

        Returns:
            list[str]: One message per overlapping pair; empty when clean.
        """
        problems: list[str] = []
        for rule in self.pricing_table:
            tier_ranges = [tier.quantity_range for tier in rule.pricing]
            problems.extend(
                f'{rule.card_type}: deck ranges "{a}" and "{b}" overlap'
                for a, b in _overlapping_pairs(tier_ranges)
            )
            for tier in rule.pricing:
                card_ranges = [QuantityRange.parse(key, allow_open=False) for key in tier.cards]
                problems.extend(
                    f'{rule.card_type} ({tier.deck_range}): card ranges "{a}" and "{b}" overlap'
                    for a, b in _overlapping_pairs(card_ranges)
                )
        return problems


def _overlapping_pairs(ranges: list[QuantityRange]) -> list[tuple[QuantityRange, QuantityRange]]:
    return [
        (first, second)
        for index, first in enumerate(ranges)
        for second in ranges[index + 1:]
        if first.overlaps(second)
    ]


class UnitPrice(BaseModel):
    """Per-deck prices resolved for one card type / quantity combination."""

    model_config = ConfigDict(from_attributes=True)

    unit_card_price: Decimal = Field(description="Price per deck for the cards")
    unit_box_price: Decimal = Field(description="Price per deck for the box")
    deck_range: str = Field(description="Matched deck tier")
    cards_range: str = Field(description="Matched cards-per-deck range")
