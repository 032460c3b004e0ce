"""Application configuration management using Pydantic Settings."""

from decimal import Decimal
from enum import Enum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class VerificationMode(str, Enum):
    """Whether a payment gateway's verification is actually performed."""

    ENFORCED = "enforced"
    BYPASSED = "bypassed"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="cardcrafter-backend", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    max_request_body_size: int = Field(default=1_048_576, description="Maximum request body size in bytes")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")
    supabase_signing_key_jwk: str = Field(..., description="Supabase signing key JWK (JSON string) for JWT token verification")
    admin_role: str = Field(default="admin", description="JWT role claim that grants access to admin routes")

    # Pricing
    pricing_config_key: str = Field(default="DEFAULT_PRICING_TABLE", description="Key of the active price table")
    tax_rate: Decimal = Field(default=Decimal("0.10"), ge=0, description="Tax rate applied to goods plus shipping")
    order_flat_shipping_fee: Decimal = Field(default=Decimal("35.00"), ge=0, description="Shipping charged at order creation")
    currency: str = Field(default="USD", description="Currency of all prices")

    # Default package used for rate lookups
    package_weight_kg: Decimal = Field(default=Decimal("1.5"), description="Package weight in kilograms")
    package_length_cm: int = Field(default=20, description="Package length in centimetres")
    package_width_cm: int = Field(default=15, description="Package width in centimetres")
    package_height_cm: int = Field(default=10, description="Package height in centimetres")

    # DHL
    dhl_api_key: str = Field(default="", description="DHL Express API key")
    dhl_api_secret: str = Field(default="", description="DHL Express API secret")
    dhl_api_rates_endpoint: str = Field(default="", description="DHL rates endpoint URL")
    dhl_api_shipments_endpoint: str = Field(default="", description="DHL shipments endpoint URL")
    dhl_account_number: str = Field(default="", description="DHL shipper account number")
    dhl_product_code: str = Field(default="P", description="DHL product code used for shipments")
    shipper_postal_code: str = Field(default="", description="Shipper postal code")
    shipper_city_name: str = Field(default="", description="Shipper city")
    shipper_country_code: str = Field(default="US", description="Shipper ISO country code")
    shipper_address: str = Field(default="", description="Shipper street address")
    shipper_contact_name: str = Field(default="Card Crafter Support", description="Shipper contact name")
    shipper_contact_phone: str = Field(default="+15555555555", description="Shipper contact phone")
    shipper_company_name: str = Field(default="Card Crafter Inc.", description="Shipper company name")
    shipping_label_dir: str = Field(default="uploads/labels", description="Directory where shipping labels are written")

    # Stripe
    stripe_secret_key: str = Field(default="", description="Stripe secret API key")
    stripe_verification_mode: VerificationMode = Field(
        default=VerificationMode.ENFORCED,
        description="Whether Stripe payments are checked against the gateway",
    )

    # PayPal
    paypal_client_id: str = Field(default="", description="PayPal REST client ID")
    paypal_client_secret: str = Field(default="", description="PayPal REST client secret")
    paypal_mode: str = Field(default="sandbox", description="PayPal environment (sandbox/live)")
    paypal_verification_mode: VerificationMode = Field(
        default=VerificationMode.ENFORCED,
        description="Whether PayPal payments are checked against the gateway",
    )

    # Outbound calls
    external_request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for carrier and payment gateway calls",
    )

    @model_validator(mode="after")
    def require_enforced_verification_in_production(self) -> "Settings":
        """Refuse to start production with any payment verification bypassed."""
        if self.is_production:
            bypassed = [
                name
                for name, mode in (
                    ("stripe", self.stripe_verification_mode),
                    ("paypal", self.paypal_verification_mode),
                )
                if mode is VerificationMode.BYPASSED
            ]
            if bypassed:
                raise ValueError(
                    f"Payment verification cannot be bypassed in production: {', '.join(bypassed)}"
                )
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def paypal_base_url(self) -> str:
        """PayPal REST base URL for the configured environment."""
        if self.paypal_mode == "live":
            return "https://api-m.paypal.com"
        return "https://api-m.sandbox.paypal.com"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
