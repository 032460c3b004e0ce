"""Unit tests for configuration module."""

import os
from decimal import Decimal
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from src.core.config import Settings, VerificationMode, get_settings


class TestSettings:
    """Tests for Settings class."""

    def test_settings_loads_from_environment(self) -> None:
        """Test that Settings loads values from environment variables."""
        env_vars = {
            "APP_NAME": "test-app",
            "APP_ENV": "testing",
            "PORT": "9000",
            "TAX_RATE": "0.2",
            "ORDER_FLAT_SHIPPING_FEE": "12.50",
            "STRIPE_VERIFICATION_MODE": "bypassed",
        }

        with patch.dict(os.environ, env_vars, clear=False):
            settings = Settings()

            assert settings.app_name == "test-app"
            assert settings.app_env == "testing"
            assert settings.port == 9000
            assert settings.tax_rate == Decimal("0.2")
            assert settings.order_flat_shipping_fee == Decimal("12.50")
            assert settings.stripe_verification_mode is VerificationMode.BYPASSED
            assert settings.paypal_verification_mode is VerificationMode.ENFORCED

    def test_settings_cors_origins_list(self) -> None:
        """Test that CORS origins are correctly parsed into a list."""
        with patch.dict(os.environ, {"CORS_ORIGINS": "http://localhost:3000, http://example.com ,,"}, clear=False):
            settings = Settings()

            assert settings.cors_origins_list == ["http://localhost:3000", "http://example.com"]

    def test_settings_is_production_property(self) -> None:
        """Test the is_production property."""
        with patch.dict(os.environ, {"APP_ENV": "production"}, clear=False):
            assert Settings().is_production is True

        with patch.dict(os.environ, {"APP_ENV": "development"}, clear=False):
            assert Settings().is_production is False

    def test_paypal_base_url_follows_mode(self) -> None:
        """Live mode talks to the live API, anything else to sandbox."""
        assert Settings(paypal_mode="live").paypal_base_url == "https://api-m.paypal.com"
        assert Settings(paypal_mode="sandbox").paypal_base_url == "https://api-m.sandbox.paypal.com"

    def test_production_refuses_bypassed_verification(self) -> None:
        """Bypassed gateways are a startup error in production."""
        with pytest.raises(ValidationError) as exc_info:
            Settings(app_env="production", paypal_verification_mode="bypassed")

        assert "paypal" in str(exc_info.value)

    def test_bypassed_verification_allowed_outside_production(self) -> None:
        """Development may bypass both gateways."""
        settings = Settings(
            app_env="development",
            stripe_verification_mode="bypassed",
            paypal_verification_mode="bypassed",
        )

        assert settings.stripe_verification_mode is VerificationMode.BYPASSED

    def test_negative_tax_rate_rejected(self) -> None:
        """Tax rates cannot be negative."""
        with pytest.raises(ValidationError):
            Settings(tax_rate=Decimal("-0.1"))

    def test_missing_required_setting(self) -> None:
        """Supabase credentials are required."""
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValidationError):
                Settings(_env_file=None)


class TestGetSettings:
    """Tests for get_settings function."""

    def test_get_settings_returns_cached_instance(self) -> None:
        """Test that get_settings returns the same cached instance."""
        get_settings.cache_clear()

        first = get_settings()
        second = get_settings()

        assert first is second
        get_settings.cache_clear()
