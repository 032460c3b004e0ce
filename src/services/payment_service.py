"""Payment verification against Stripe and PayPal."""

import asyncio
import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation

import stripe

from src.api.middleware.error_handler import (
    ConfigurationError,
    UnsupportedPaymentMethodError,
    UpstreamGatewayError,
)
from src.core.config import Settings, VerificationMode, get_settings
from src.core.paypal import PayPalClient, get_paypal_client
from src.core.stripe import get_stripe

logger = logging.getLogger(__name__)

# Absorbs currency rounding differences between our total and the gateway's
AMOUNT_TOLERANCE = Decimal("0.01")


def amounts_match(paid: Decimal, expected: Decimal) -> bool:
    return abs(paid - expected) < AMOUNT_TOLERANCE


class PaymentVerifier(ABC):
    """Confirms a client-submitted payment reference with its gateway.

    A verifier in BYPASSED mode returns True without calling the gateway.
    "Verified" therefore means either confirmed by the gateway or
    verification intentionally disabled by configuration.
    """

    name: str = ""

    def __init__(self, mode: VerificationMode, currency: str) -> None:
        self.mode = mode
        self.currency = currency.upper()

    async def verify(self, transaction_reference: str, expected_amount: Decimal) -> bool:
        """Check the gateway's record for a transaction.

        Args:
            transaction_reference: Gateway reference from the client.
            expected_amount: Server-recomputed total (unrounded).

        Returns:
            bool: True if the payment completed for the expected amount.
            A mismatch returns False; it never raises.

        Raises:
            ConfigurationError: If verification is enforced without credentials.
            UpstreamGatewayError: If the gateway cannot be reached.
        """
        if self.mode is VerificationMode.BYPASSED:
            logger.warning(
                "%s verification is bypassed. Assuming payment %s is valid.",
                self.name,
                transaction_reference,
            )
            return True
        return await self._verify_with_gateway(transaction_reference, expected_amount)

    @abstractmethod
    async def _verify_with_gateway(self, transaction_reference: str, expected_amount: Decimal) -> bool:
        ...


class StripePaymentVerifier(PaymentVerifier):
    """Verifies Stripe PaymentIntents."""

    name = "Stripe"
    COMPLETED_STATUS = "succeeded"

    def __init__(
        self,
        mode: VerificationMode,
        currency: str,
        secret_key: str,
        stripe_module=None,
    ) -> None:
        super().__init__(mode, currency)
        self.secret_key = secret_key
        self.stripe = stripe_module or get_stripe()

    async def _verify_with_gateway(self, transaction_reference: str, expected_amount: Decimal) -> bool:
        if not self.secret_key:
            raise ConfigurationError(
                "Stripe verification is enforced, but the service could not be configured (missing key)."
            )

        try:
            intent = await asyncio.to_thread(
                self.stripe.PaymentIntent.retrieve, transaction_reference, api_key=self.secret_key
            )
        except stripe.error.InvalidRequestError as e:
            if getattr(e, "http_status", None) == 404:
                logger.warning("Stripe verification FAILED for ID %s: no such payment intent", transaction_reference)
                return False
            raise UpstreamGatewayError("Stripe", str(e), retryable=False) from e
        except stripe.error.StripeError as e:
            retryable = isinstance(e, (stripe.error.APIConnectionError, stripe.error.RateLimitError))
            raise UpstreamGatewayError("Stripe", str(e), retryable=retryable) from e

        status = intent["status"]
        paid = Decimal(int(intent["amount"])) / 100
        currency = str(intent.get("currency") or "").upper()

        if status == self.COMPLETED_STATUS and amounts_match(paid, expected_amount) and currency in ("", self.currency):
            return True

        logger.warning(
            "Stripe verification FAILED for ID %s: status=%s amount=%s %s expected=%s %s",
            transaction_reference,
            status,
            paid,
            currency,
            expected_amount,
            self.currency,
        )
        return False


class PayPalPaymentVerifier(PaymentVerifier):
    """Verifies PayPal orders (v2 Orders API)."""

    name = "PayPal"
    COMPLETED_STATUS = "COMPLETED"

    def __init__(
        self,
        mode: VerificationMode,
        currency: str,
        client: PayPalClient | None = None,
    ) -> None:
        super().__init__(mode, currency)
        self.client = client or get_paypal_client()

    async def _verify_with_gateway(self, transaction_reference: str, expected_amount: Decimal) -> bool:
        order = await asyncio.to_thread(self.client.get_order, transaction_reference)
        if order is None:
            logger.warning("PayPal verification FAILED for ID %s: no such order", transaction_reference)
            return False

        status = order.get("status")
        purchase_units = order.get("purchase_units") or []
        amount = purchase_units[0].get("amount", {}) if purchase_units else {}
        try:
            paid = Decimal(str(amount.get("value")))
        except InvalidOperation:
            logger.warning("PayPal verification FAILED for ID %s: no readable amount", transaction_reference)
            return False
        currency = str(amount.get("currency_code") or "").upper()

        if status == self.COMPLETED_STATUS and amounts_match(paid, expected_amount) and currency in ("", self.currency):
            return True

        logger.warning(
            "PayPal verification FAILED for ID %s: status=%s amount=%s %s expected=%s %s",
            transaction_reference,
            status,
            paid,
            currency,
            expected_amount,
            self.currency,
        )
        return False


class PaymentService:
    """Dispatches verification to the verifier for a payment method."""

    def __init__(
        self,
        verifiers: dict[str, PaymentVerifier] | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize payment service.

        Args:
            verifiers: Optional verifiers keyed by lower-case method name, for testing.
            settings: Optional settings for testing.
        """
        self.settings = settings or get_settings()
        if verifiers is None:
            verifiers = {
                "stripe": StripePaymentVerifier(
                    mode=self.settings.stripe_verification_mode,
                    currency=self.settings.currency,
                    secret_key=self.settings.stripe_secret_key,
                ),
                "paypal": PayPalPaymentVerifier(
                    mode=self.settings.paypal_verification_mode,
                    currency=self.settings.currency,
                ),
            }
        self.verifiers = verifiers

    def verifier_for(self, payment_method: str) -> PaymentVerifier:
        """Look up a verifier by case-insensitive method name.

        Raises:
            UnsupportedPaymentMethodError: If no verifier handles the method.
        """
        verifier = self.verifiers.get(payment_method.strip().lower())
        if verifier is None:
            raise UnsupportedPaymentMethodError(payment_method)
        return verifier

    async def verify(self, payment_method: str, transaction_reference: str, expected_amount: Decimal) -> bool:
        """Verify a payment with the gateway for payment_method."""
        verifier = self.verifier_for(payment_method)
        return await verifier.verify(transaction_reference, expected_amount)
