"""Unit tests for payment verification."""

import threading
from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock

import pytest
import requests
import stripe

from src.api.middleware.error_handler import (
    ConfigurationError,
    UnsupportedPaymentMethodError,
    UpstreamGatewayError,
)
from src.core.config import VerificationMode
from src.core.paypal import PayPalClient
from src.services.payment_service import (
    PaymentService,
    PayPalPaymentVerifier,
    StripePaymentVerifier,
)


def stripe_verifier(
    intent: dict[str, Any] | None = None,
    mode: VerificationMode = VerificationMode.ENFORCED,
    secret_key: str = "sk_test_123",
) -> StripePaymentVerifier:
    stripe_module = MagicMock()
    stripe_module.PaymentIntent.retrieve.return_value = intent
    return StripePaymentVerifier(mode=mode, currency="USD", secret_key=secret_key, stripe_module=stripe_module)


def paypal_verifier(order: dict[str, Any] | None, mode: VerificationMode = VerificationMode.ENFORCED) -> PayPalPaymentVerifier:
    client = MagicMock(spec=PayPalClient)
    client.get_order.return_value = order
    return PayPalPaymentVerifier(mode=mode, currency="USD", client=client)


def paypal_order(status: str = "COMPLETED", value: str = "100.00", currency: str = "USD") -> dict[str, Any]:
    return {
        "id": "5O190127TN364715T",
        "status": status,
        "purchase_units": [{"amount": {"currency_code": currency, "value": value}}],
    }


class TestStripePaymentVerifier:
    """Tests for Stripe PaymentIntent verification."""

    @pytest.mark.asyncio
    async def test_succeeded_intent_with_matching_amount(self) -> None:
        """A succeeded intent for the expected cents verifies."""
        verifier = stripe_verifier({"status": "succeeded", "amount": 34210, "currency": "usd"})

        assert await verifier.verify("pi_123", Decimal("342.1000")) is True
        verifier.stripe.PaymentIntent.retrieve.assert_called_once_with("pi_123", api_key="sk_test_123")

    @pytest.mark.asyncio
    async def test_amount_mismatch_returns_false(self) -> None:
        """Gateway says 90.00 while 100.00 is expected."""
        verifier = stripe_verifier({"status": "succeeded", "amount": 9000, "currency": "usd"})

        assert await verifier.verify("pi_123", Decimal("100.00")) is False

    @pytest.mark.asyncio
    async def test_unsettled_status_returns_false(self) -> None:
        """Only succeeded intents verify."""
        verifier = stripe_verifier({"status": "requires_payment_method", "amount": 10000, "currency": "usd"})

        assert await verifier.verify("pi_123", Decimal("100.00")) is False

    @pytest.mark.asyncio
    async def test_currency_mismatch_returns_false(self) -> None:
        """An intent in another currency does not verify."""
        verifier = stripe_verifier({"status": "succeeded", "amount": 10000, "currency": "eur"})

        assert await verifier.verify("pi_123", Decimal("100.00")) is False

    @pytest.mark.asyncio
    async def test_sub_cent_difference_is_tolerated(self) -> None:
        """Rounding differences under a cent still verify."""
        verifier = stripe_verifier({"status": "succeeded", "amount": 10001, "currency": "usd"})

        assert await verifier.verify("pi_123", Decimal("100.005")) is True

    @pytest.mark.asyncio
    async def test_unknown_intent_returns_false(self) -> None:
        """A reference Stripe has never seen is a failed verification."""
        verifier = stripe_verifier()
        verifier.stripe.PaymentIntent.retrieve.side_effect = stripe.error.InvalidRequestError(
            "No such payment_intent", "id", http_status=404
        )

        assert await verifier.verify("pi_missing", Decimal("100.00")) is False

    @pytest.mark.asyncio
    async def test_connection_error_is_retryable_upstream_error(self) -> None:
        """Transport failures raise instead of returning False."""
        verifier = stripe_verifier()
        verifier.stripe.PaymentIntent.retrieve.side_effect = stripe.error.APIConnectionError("timeout")

        with pytest.raises(UpstreamGatewayError) as exc_info:
            await verifier.verify("pi_123", Decimal("100.00"))
        assert exc_info.value.retryable is True
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_enforced_without_key_is_configuration_error(self) -> None:
        """Missing credentials are an operator problem."""
        verifier = stripe_verifier(secret_key="")

        with pytest.raises(ConfigurationError):
            await verifier.verify("pi_123", Decimal("100.00"))

    @pytest.mark.asyncio
    async def test_bypassed_mode_skips_gateway(self) -> None:
        """Bypassed verification returns True without calling Stripe."""
        verifier = stripe_verifier(mode=VerificationMode.BYPASSED, secret_key="")

        assert await verifier.verify("anything", Decimal("100.00")) is True
        verifier.stripe.PaymentIntent.retrieve.assert_not_called()

    @pytest.mark.asyncio
    async def test_gateway_call_runs_off_the_event_loop(self) -> None:
        """The blocking Stripe request runs in a worker thread."""
        callers: list[int] = []
        verifier = stripe_verifier()

        def retrieve(reference: str, api_key: str) -> dict[str, Any]:
            callers.append(threading.get_ident())
            return {"status": "succeeded", "amount": 10000, "currency": "usd"}

        verifier.stripe.PaymentIntent.retrieve.side_effect = retrieve

        assert await verifier.verify("pi_123", Decimal("100.00")) is True
        assert callers and callers[0] != threading.get_ident()


class TestPayPalPaymentVerifier:
    """Tests for PayPal order verification."""

    @pytest.mark.asyncio
    async def test_completed_order_with_matching_amount(self) -> None:
        """A completed order for the expected amount verifies."""
        verifier = paypal_verifier(paypal_order(value="342.10"))

        assert await verifier.verify("5O190127TN364715T", Decimal("342.1000")) is True

    @pytest.mark.asyncio
    async def test_amount_mismatch_returns_false(self) -> None:
        """A cent or more apart does not verify."""
        verifier = paypal_verifier(paypal_order(value="90.00"))

        assert await verifier.verify("5O190127TN364715T", Decimal("100.00")) is False

    @pytest.mark.asyncio
    async def test_pending_order_returns_false(self) -> None:
        """Approved but uncaptured orders do not verify."""
        verifier = paypal_verifier(paypal_order(status="APPROVED"))

        assert await verifier.verify("5O190127TN364715T", Decimal("100.00")) is False

    @pytest.mark.asyncio
    async def test_unknown_order_returns_false(self) -> None:
        """PayPal 404 is a failed verification."""
        verifier = paypal_verifier(None)

        assert await verifier.verify("missing", Decimal("100.00")) is False

    @pytest.mark.asyncio
    async def test_order_without_amount_returns_false(self) -> None:
        """Orders without purchase units cannot be matched."""
        verifier = paypal_verifier({"status": "COMPLETED", "purchase_units": []})

        assert await verifier.verify("5O190127TN364715T", Decimal("100.00")) is False

    @pytest.mark.asyncio
    async def test_gateway_call_runs_off_the_event_loop(self) -> None:
        """The blocking PayPal request runs in a worker thread."""
        callers: list[int] = []
        verifier = paypal_verifier(None)

        def get_order(reference: str) -> dict[str, Any]:
            callers.append(threading.get_ident())
            return paypal_order()

        verifier.client.get_order.side_effect = get_order

        assert await verifier.verify("5O190127TN364715T", Decimal("100.00")) is True
        assert callers and callers[0] != threading.get_ident()


class TestPayPalClient:
    """Tests for PayPal transport."""

    def test_not_found_returns_none(self, settings_factory: Any) -> None:
        """A 404 on the order lookup is not an error."""
        token_response = MagicMock(ok=True, status_code=200)
        token_response.json.return_value = {"access_token": "A21AA"}
        order_response = MagicMock(ok=False, status_code=404)
        session = MagicMock()
        session.request.side_effect = [token_response, order_response]
        client = PayPalClient(settings_factory(), session=session)

        assert client.get_order("missing") is None
        url = session.request.call_args.args[1]
        assert url == "https://api-m.sandbox.paypal.com/v2/checkout/orders/missing"

    def test_timeout_is_upstream_error(self, settings_factory: Any) -> None:
        """Timeouts surface as retryable upstream errors."""
        session = MagicMock()
        session.request.side_effect = requests.Timeout()
        client = PayPalClient(settings_factory(), session=session)

        with pytest.raises(UpstreamGatewayError) as exc_info:
            client.get_order("5O190127TN364715T")
        assert exc_info.value.service == "PayPal"
        assert exc_info.value.retryable is True

    def test_missing_credentials_is_configuration_error(self, settings_factory: Any) -> None:
        """Enforced verification needs client credentials."""
        client = PayPalClient(settings_factory(paypal_client_id=""), session=MagicMock())

        with pytest.raises(ConfigurationError):
            client.get_order("5O190127TN364715T")


class TestPaymentService:
    """Tests for payment method dispatch."""

    @pytest.mark.asyncio
    async def test_dispatch_is_case_insensitive(self, test_settings: Any) -> None:
        """'Stripe' and 'stripe' reach the same verifier."""
        verifier = stripe_verifier({"status": "succeeded", "amount": 10000, "currency": "usd"})
        service = PaymentService(verifiers={"stripe": verifier}, settings=test_settings)

        assert await service.verify("Stripe", "pi_123", Decimal("100.00")) is True

    @pytest.mark.asyncio
    async def test_unsupported_method(self, test_settings: Any) -> None:
        """Unknown methods are a 400."""
        service = PaymentService(verifiers={}, settings=test_settings)

        with pytest.raises(UnsupportedPaymentMethodError) as exc_info:
            await service.verify("bitcoin", "tx", Decimal("1"))
        assert exc_info.value.status_code == 400

    def test_default_verifiers_follow_settings(self, settings_factory: Any) -> None:
        """Each gateway takes its own verification mode."""
        settings = settings_factory(paypal_verification_mode="bypassed")
        service = PaymentService(settings=settings)

        assert service.verifier_for("stripe").mode is VerificationMode.ENFORCED
        assert service.verifier_for("PAYPAL").mode is VerificationMode.BYPASSED
