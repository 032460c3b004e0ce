"""PayPal REST client configuration and transport."""

import logging
from functools import lru_cache
from typing import Any

import requests
from requests.auth import HTTPBasicAuth

from src.api.middleware.error_handler import ConfigurationError, UpstreamGatewayError
from src.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class PayPalClient:
    """Client-credentials PayPal REST client for reading orders."""

    def __init__(self, settings: Settings, session: requests.Session | None = None) -> None:
        self.settings = settings
        self.session = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.paypal_client_id and self.settings.paypal_client_secret)

    @property
    def timeout(self) -> float:
        return self.settings.external_request_timeout_seconds

    def _access_token(self) -> str:
        if not self.is_configured:
            raise ConfigurationError(
                "PayPal verification is enforced, but PAYPAL_CLIENT_ID or PAYPAL_CLIENT_SECRET is not set."
            )

        payload = self._send(
            "POST",
            "/v1/oauth2/token",
            auth=HTTPBasicAuth(self.settings.paypal_client_id, self.settings.paypal_client_secret),
            data={"grant_type": "client_credentials"},
        )
        token = payload.get("access_token")
        if not token:
            raise UpstreamGatewayError("PayPal", "OAuth response did not include an access token")
        return token

    def get_order(self, order_id: str) -> dict[str, Any] | None:
        """Retrieve a PayPal order (v2 Orders API).

        Args:
            order_id: The PayPal order ID submitted by the client.

        Returns:
            dict | None: The order resource, or None if PayPal has no such order.

        Raises:
            ConfigurationError: If client credentials are missing.
            UpstreamGatewayError: On timeout, transport or API failure.
        """
        token = self._access_token()
        return self._send(
            "GET",
            f"/v2/checkout/orders/{order_id}",
            headers={"Authorization": f"Bearer {token}"},
            allow_not_found=True,
        )

    def _send(
        self,
        method: str,
        path: str,
        allow_not_found: bool = False,
        **kwargs: Any,
    ) -> dict[str, Any] | None:
        url = f"{self.settings.paypal_base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            logger.error("PayPal request timed out after %ss: %s %s", self.timeout, method, path)
            raise UpstreamGatewayError("PayPal", f"Request timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            logger.error("PayPal request failed: %s", e)
            raise UpstreamGatewayError("PayPal", str(e)) from e

        if allow_not_found and response.status_code == 404:
            return None

        if not response.ok:
            try:
                detail: Any = response.json()
            except ValueError:
                detail = response.text
            logger.error("PayPal error details (HTTP %s): %s", response.status_code, detail)
            raise UpstreamGatewayError(
                "PayPal",
                f"HTTP {response.status_code}: {detail}",
                retryable=response.status_code >= 500 or response.status_code == 429,
            )
        return response.json()


@lru_cache
def get_paypal_client() -> PayPalClient:
    """Get the process-wide PayPal client built from settings."""
    return PayPalClient(get_settings())
