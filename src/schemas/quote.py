"""Quote Pydantic schemas for API request/response models."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def normalize_country_code(value: str) -> str:
    """Upper-case a two-letter ISO country code, rejecting anything else."""
    code = value.strip().upper()
    if len(code) != 2 or not code.isalpha():
        raise ValueError("country_code must be a two-letter ISO 3166-1 code")
    return code


class QuoteDestination(BaseModel):
    """Destination fields needed to look up carrier rates."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    country_code: str = Field(description="ISO 3166-1 alpha-2 country code")
    zip_code: str = Field(min_length=1, description="Destination postal code")
    city: str = Field(min_length=1, description="Destination city")

    @field_validator("country_code")
    @classmethod
    def validate_country_code(cls, value: str) -> str:
        return normalize_country_code(value)


class PackageDetails(BaseModel):
    """Physical package attributes sent to the carrier."""

    model_config = ConfigDict(from_attributes=True)

    weight: Decimal = Field(gt=0, description="Weight in kilograms")
    length: int = Field(gt=0, description="Length in centimetres")
    width: int = Field(gt=0, description="Width in centimetres")
    height: int = Field(gt=0, description="Height in centimetres")


class QuoteRequest(BaseModel):
    """Schema for POST /quote."""

    model_config = ConfigDict(from_attributes=True)

    card_type: str = Field(min_length=1, description="Card stock name")
    deck_quantity: int = Field(ge=1, description="Number of decks")
    cards_per_deck: int = Field(ge=1, description="Cards in each deck")
    shipping_details: QuoteDestination = Field(description="Where the order would ship")


class ShippingOption(BaseModel):
    """One carrier service offer, in carrier order."""

    model_config = ConfigDict(from_attributes=True)

    service_name: str = Field(description="Carrier product name")
    price: Decimal = Field(description="Total price for this service")
    currency: str | None = Field(default=None, description="Currency of the price")
    estimated_delivery: str | None = Field(default=None, description="Estimated delivery date/time")


class QuoteLine(BaseModel):
    """A labelled, rounded amount in the quote summary."""

    label: str = Field(description="Display label")
    value: Decimal = Field(description="Amount rounded to cents")


class QuoteSummary(BaseModel):
    """Rounded quote breakdown."""

    cards: QuoteLine
    boxes: QuoteLine
    shipping: QuoteLine
    tax: QuoteLine
    total: QuoteLine


class QuoteResponse(BaseModel):
    """Schema for POST /quote responses."""

    summary: QuoteSummary = Field(description="Cost breakdown using the first shipping option")
    shipping_options: list[ShippingOption] = Field(description="All carrier options in carrier order")
