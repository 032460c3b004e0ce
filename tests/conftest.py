"""Pytest configuration and fixtures."""

import os
from collections.abc import Generator
from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock, patch
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SUPABASE_SIGNING_KEY_JWK", "test-signing-key-jwk")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_stripe_secret_key")
os.environ.setdefault("PAYPAL_CLIENT_ID", "test-paypal-client-id")
os.environ.setdefault("PAYPAL_CLIENT_SECRET", "test-paypal-client-secret")
os.environ.setdefault("DHL_API_KEY", "test-dhl-key")
os.environ.setdefault("DHL_API_SECRET", "test-dhl-secret")
os.environ.setdefault("DHL_API_RATES_ENDPOINT", "https://dhl.test/rates")
os.environ.setdefault("DHL_API_SHIPMENTS_ENDPOINT", "https://dhl.test/shipments")
os.environ.setdefault("DHL_ACCOUNT_NUMBER", "123456789")
os.environ.setdefault("SHIPPER_POSTAL_CODE", "94105")
os.environ.setdefault("SHIPPER_CITY_NAME", "San Francisco")
os.environ.setdefault("SHIPPER_ADDRESS", "1 Market St")

TEST_USER_ID = UUID("550e8400-e29b-41d4-a716-446655440000")

PRICE_TABLE_ROW: dict[str, Any] = {
    "config_key": "DEFAULT_PRICING_TABLE",
    "pricing_table": [
        {
            "card_type": "Standard 300gsm Poker",
            "size": "63x88mm",
            "pricing": [
                {
                    "deck_range": "20-50",
                    "cards": {"30-50": "4.20", "51-75": "5.10", "76-100": "6.05", "101-120": "6.90"},
                    "box": "1.80",
                },
                {
                    "deck_range": "51-2499",
                    "cards": {"30-50": "3.60", "51-75": "4.40", "76-100": "5.20", "101-120": "5.95"},
                    "box": "1.55",
                },
                {
                    "deck_range": "2500+",
                    "cards": {"30-50": "1.30", "51-75": "1.60", "76-100": "1.90", "101-120": "2.20"},
                    "box": "0.60",
                },
            ],
        },
        {
            "card_type": "Standard 300gsm Bridge",
            "size": "57x88mm",
            "pricing": [
                {
                    "deck_range": "1-19",
                    "cards": {"30-50": "5.00", "51-75": "6.00"},
                    "box": "2.00",
                },
            ],
        },
    ],
    "created_at": "2026-01-01T00:00:00+00:00",
    "updated_at": "2026-01-01T00:00:00+00:00",
}


def make_order_row(**overrides: Any) -> dict[str, Any]:
    """Build an orders table row as Supabase would return it."""
    row: dict[str, Any] = {
        "id": "0b7f8c2e-8a44-4a1e-9a1b-3f0d2c9e1a10",
        "order_id": "#ORD-2026-00042",
        "user_id": str(TEST_USER_ID),
        "items": [
            {
                "box_id": "box-1",
                "deck_quantity": 40,
                "cards_per_deck": 60,
                "material_finish": "Linen",
                "card_stock": "Standard 300gsm Poker",
                "box_type": "Tuck Box",
            }
        ],
        "shipping_details": {
            "full_name": "Ada Lovelace",
            "email": "ada@example.com",
            "phone": "+441234567890",
            "address": "12 St James's Square",
            "city": "London",
            "country": "United Kingdom",
            "country_code": "GB",
            "zip_code": "SW1Y 4JH",
        },
        "costs": {
            "cards_subtotal": "204.00",
            "boxes_subtotal": "72.00",
            "shipping": "35.00",
            "tax": "31.1000",
            "total": "342.1000",
        },
        "payment_method": "stripe",
        "transaction_id": "pi_test_123",
        "order_status": "Pending Approval",
        "status_history": [{"status": "Pending Approval", "date": "2026-01-05T10:00:00+00:00"}],
        "dhl_tracking_number": None,
        "shipment_requested_at": None,
        "printable_pdf_url": None,
        "created_at": "2026-01-05T10:00:00+00:00",
        "updated_at": "2026-01-05T10:00:00+00:00",
    }
    row.update(overrides)
    return row


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from src.core.config import get_settings

    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    get_settings.cache_clear()


@pytest.fixture
def settings_factory() -> Any:
    """Build Settings with overrides without touching the cached instance."""
    from src.core.config import Settings

    def factory(**overrides: Any) -> Any:
        return Settings(**overrides)

    return factory


@pytest.fixture
def price_table_row() -> dict[str, Any]:
    """A stored price_configurations row."""
    return PRICE_TABLE_ROW


@pytest.fixture
def order_row() -> dict[str, Any]:
    """A stored orders row in Pending Approval."""
    return make_order_row()


@pytest.fixture
def expected_total() -> Decimal:
    """Total for 40 decks of 60 cards with flat shipping."""
    return Decimal("342.1000")


@pytest.fixture
def mock_supabase_client() -> Generator[MagicMock, None, None]:
    """Provide a mocked Supabase client.

    Yields:
        MagicMock: Mocked Supabase client for testing.
    """
    mock_client = MagicMock()

    mock_response = MagicMock()
    mock_response.data = []
    mock_client.table.return_value.select.return_value.limit.return_value.execute.return_value = (
        mock_response
    )

    with patch("src.core.supabase.get_supabase_client", return_value=mock_client):
        yield mock_client


@pytest.fixture
def client(mock_supabase_client: MagicMock) -> Generator[TestClient, None, None]:
    """Provide a test client for the FastAPI application.

    Args:
        mock_supabase_client: Mocked Supabase client fixture.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import app

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
