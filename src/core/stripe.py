"""Stripe client configuration."""

import logging

import stripe

from src.core.config import VerificationMode, get_settings

logger = logging.getLogger(__name__)


def configure_stripe() -> None:
    """Configure the Stripe SDK's HTTP client and API key from settings.

    This should be called once at application startup. Calls made before
    this (or without a key) fail with a ConfigurationError at call time.
    """
    settings = get_settings()
    stripe.default_http_client = stripe.RequestsClient(timeout=settings.external_request_timeout_seconds)
    if settings.stripe_secret_key:
        stripe.api_key = settings.stripe_secret_key
    elif settings.stripe_verification_mode is VerificationMode.ENFORCED:
        logger.error("Stripe verification is enforced, but STRIPE_SECRET_KEY is not set.")
    else:
        logger.warning("Stripe secret key not configured. Stripe verification is bypassed.")


def get_stripe() -> stripe:
    """Get the configured Stripe module.

    Returns:
        stripe: The Stripe module.

    Note:
        Stripe SDK uses module-level configuration, so this returns
        the stripe module itself. Ensure configure_stripe() has been
        called before using Stripe API calls.
    """
    return stripe
