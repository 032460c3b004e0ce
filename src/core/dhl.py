"""DHL Express REST client configuration and transport."""

import logging
from functools import lru_cache
from typing import Any

import requests
from requests.auth import HTTPBasicAuth

from src.api.middleware.error_handler import CarrierUnavailableError, ConfigurationError
from src.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class DhlClient:
    """Thin authenticated wrapper over the DHL rates and shipments endpoints.

    Holds no state beyond configuration; every call is independent.
    """

    def __init__(self, settings: Settings, session: requests.Session | None = None) -> None:
        self.settings = settings
        self.session = session or requests.Session()

    @property
    def timeout(self) -> float:
        return self.settings.external_request_timeout_seconds

    def _require_config(self, endpoint: str, purpose: str) -> HTTPBasicAuth:
        settings = self.settings
        if not (settings.dhl_api_key and settings.dhl_api_secret and endpoint and settings.dhl_account_number):
            logger.error("DHL API credentials, %s endpoint, or account number are not fully configured.", purpose)
            raise ConfigurationError(f"{purpose.capitalize()} service is not properly configured.")
        return HTTPBasicAuth(settings.dhl_api_key, settings.dhl_api_secret)

    def get_rates(self, params: dict[str, Any]) -> dict[str, Any]:
        """Query the rates endpoint.

        Args:
            params: Query parameters for the rate request.

        Returns:
            dict: Decoded JSON response body.

        Raises:
            ConfigurationError: If credentials or the endpoint are missing.
            CarrierUnavailableError: On timeout, transport or API failure.
        """
        endpoint = self.settings.dhl_api_rates_endpoint
        auth = self._require_config(endpoint, "shipping rate")
        return self._send("GET", endpoint, auth, params=params)

    def create_shipment(self, body: dict[str, Any]) -> dict[str, Any]:
        """Post a shipment request.

        Args:
            body: Shipment request payload.

        Returns:
            dict: Decoded JSON response body.

        Raises:
            ConfigurationError: If credentials or the endpoint are missing.
            CarrierUnavailableError: On timeout, transport or API failure.
        """
        endpoint = self.settings.dhl_api_shipments_endpoint
        auth = self._require_config(endpoint, "shipment creation")
        return self._send("POST", endpoint, auth, json=body)

    def _send(self, method: str, url: str, auth: HTTPBasicAuth, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self.session.request(method, url, auth=auth, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            logger.error("DHL request timed out after %ss: %s %s", self.timeout, method, url)
            raise CarrierUnavailableError(f"Request timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            logger.error("DHL request failed: %s", e)
            raise CarrierUnavailableError(str(e)) from e

        if not response.ok:
            payload = _safe_json(response)
            logger.error("DHL error details (HTTP %s): %s", response.status_code, payload)
            raise CarrierUnavailableError(
                _error_message(payload, response.status_code),
                retryable=response.status_code >= 500 or response.status_code == 429,
            )

        payload = _safe_json(response)
        if not isinstance(payload, dict):
            raise CarrierUnavailableError("Carrier returned a non-JSON response")
        return payload


def _safe_json(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _error_message(payload: Any, status_code: int) -> str:
    if isinstance(payload, dict):
        message = payload.get("detail") or payload.get("message")
        if message:
            return str(message)
        if payload.get("additionalDetails"):
            return str(payload["additionalDetails"])
    return f"HTTP {status_code}"


@lru_cache
def get_dhl_client() -> DhlClient:
    """Get the process-wide DHL client built from settings."""
    return DhlClient(get_settings())
