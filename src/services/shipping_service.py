"""Carrier rate lookup and shipment creation."""

import asyncio
import base64
import binascii
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from src.api.middleware.error_handler import CarrierUnavailableError, NoRatesAvailableError
from src.core.config import Settings, get_settings
from src.core.dhl import DhlClient, get_dhl_client
from src.schemas.quote import PackageDetails, QuoteDestination, ShippingOption
from src.services.pricing_service import quantize_money

logger = logging.getLogger(__name__)

_NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9]")


@dataclass(frozen=True)
class ShipmentResult:
    """Outcome of a successful shipment creation."""

    tracking_number: str
    label_path: Path | None


class ShippingRateService:
    """Builds carrier requests from order data and normalizes responses.

    The shipper (origin) comes from configuration; the destination comes
    from the caller.
    """

    def __init__(self, dhl_client: DhlClient | None = None, settings: Settings | None = None) -> None:
        """Initialize shipping service.

        Args:
            dhl_client: Optional carrier client for testing.
            settings: Optional settings for testing.
        """
        self.settings = settings or get_settings()
        self.dhl = dhl_client or get_dhl_client()

    def default_package(self) -> PackageDetails:
        """Package used for quotes when the caller does not supply one."""
        return PackageDetails(
            weight=self.settings.package_weight_kg,
            length=self.settings.package_length_cm,
            width=self.settings.package_width_cm,
            height=self.settings.package_height_cm,
        )

    def is_customs_declarable(self, country_code: str) -> bool:
        """Shipments leaving the shipper's country need export paperwork."""
        return country_code.upper() != self.settings.shipper_country_code.upper()

    async def get_rates(
        self,
        destination: QuoteDestination,
        package: PackageDetails | None = None,
    ) -> list[ShippingOption]:
        """Fetch shipping options for a destination.

        Options keep the carrier's ordering. Callers that need a single
        option take the first one; that is the carrier's default, not a
        guaranteed lowest price.

        Args:
            destination: Country code, postal code and city.
            package: Package attributes; defaults to the configured package.

        Returns:
            list[ShippingOption]: Normalized options, never empty.

        Raises:
            NoRatesAvailableError: If the carrier offers nothing.
            CarrierUnavailableError: On carrier transport or API failure.
            ConfigurationError: If carrier credentials are missing.
        """
        package = package or self.default_package()
        params = self.build_rate_params(destination, package)
        payload = await asyncio.to_thread(self.dhl.get_rates, params)

        options = normalize_rates(payload)
        if not options:
            logger.info(
                "No shipping options for %s %s %s",
                destination.country_code,
                destination.zip_code,
                destination.city,
            )
            raise NoRatesAvailableError()
        return options

    def build_rate_params(self, destination: QuoteDestination, package: PackageDetails) -> dict[str, Any]:
        settings = self.settings
        return {
            "accountNumber": settings.dhl_account_number,
            "originCountryCode": settings.shipper_country_code,
            "originPostalCode": settings.shipper_postal_code,
            "originCityName": settings.shipper_city_name,
            "destinationCountryCode": destination.country_code,
            "destinationCityName": destination.city,
            "destinationPostalCode": destination.zip_code,
            "weight": str(package.weight),
            "length": package.length,
            "width": package.width,
            "height": package.height,
            "plannedShippingDate": datetime.now(timezone.utc).date().isoformat(),
            "isCustomsDeclarable": str(self.is_customs_declarable(destination.country_code)).lower(),
            "unitOfMeasurement": "metric",
            "requestEstimatedDeliveryDate": "true",
            "estimatedDeliveryDateType": "QDDF",
        }

    async def create_shipment(self, order: dict[str, Any]) -> ShipmentResult:
        """Create a carrier shipment for an order and store its label.

        Args:
            order: Order row (shipping_details, costs, items, order_id).

        Returns:
            ShipmentResult: Tracking number and where the label was written.

        Raises:
            CarrierUnavailableError: On carrier failure or an incomplete response.
            ConfigurationError: If carrier credentials are missing.
        """
        body = self.build_shipment_request(order)
        logger.info("Creating DHL shipment for order %s", order["order_id"])
        payload = await asyncio.to_thread(self.dhl.create_shipment, body)

        tracking_number = payload.get("shipmentTrackingNumber")
        documents = payload.get("documents") or []
        label_content = documents[0].get("content") if documents else None
        if not tracking_number or not label_content:
            logger.error("DHL shipment response incomplete for %s: %s", order["order_id"], payload)
            raise CarrierUnavailableError(
                "DHL API response was missing a tracking number or shipping label.",
                retryable=False,
            )

        label_path = self._save_label(order["order_id"], label_content)
        logger.info("Shipment created for %s. Tracking #: %s", order["order_id"], tracking_number)
        return ShipmentResult(tracking_number=str(tracking_number), label_path=label_path)

    def build_shipment_request(self, order: dict[str, Any]) -> dict[str, Any]:
        settings = self.settings
        shipping = order["shipping_details"]
        costs = order["costs"]
        items = order.get("items") or []
        now = datetime.now(timezone.utc)

        declared_value = float(
            quantize_money(Decimal(str(costs["cards_subtotal"])) + Decimal(str(costs["boxes_subtotal"])))
        )
        customs_declarable = self.is_customs_declarable(shipping["country_code"])
        package = self.default_package()

        body: dict[str, Any] = {
            "plannedShippingDateAndTime": now.strftime("%Y-%m-%dT%H:%M:%S GMT+00:00"),
            "pickup": {"isRequested": False},
            "productCode": settings.dhl_product_code,
            "accounts": [{"typeCode": "shipper", "number": settings.dhl_account_number}],
            "customerDetails": {
                "shipperDetails": {
                    "postalAddress": {
                        "postalCode": settings.shipper_postal_code,
                        "cityName": settings.shipper_city_name,
                        "countryCode": settings.shipper_country_code,
                        "addressLine1": settings.shipper_address,
                    },
                    "contactInformation": {
                        "fullName": settings.shipper_contact_name,
                        "phone": settings.shipper_contact_phone,
                        "companyName": settings.shipper_company_name,
                    },
                },
                "receiverDetails": {
                    "postalAddress": {
                        "postalCode": shipping["zip_code"],
                        "cityName": shipping["city"],
                        "countryCode": shipping["country_code"],
                        "addressLine1": shipping["address"],
                    },
                    "contactInformation": {
                        "fullName": shipping["full_name"],
                        "phone": shipping.get("phone") or "",
                        "companyName": shipping["full_name"],
                    },
                },
            },
            "content": {
                "packages": [
                    {
                        "weight": float(package.weight),
                        "dimensions": {
                            "length": package.length,
                            "width": package.width,
                            "height": package.height,
                        },
                    }
                ],
                "unitOfMeasurement": "metric",
                "isCustomsDeclarable": customs_declarable,
                "description": f"Order of custom playing cards - {order['order_id']}",
                "declaredValue": declared_value,
                "declaredValueCurrency": settings.currency,
                "incoterm": "DAP",
            },
        }

        if customs_declarable:
            deck_quantity = items[0]["deck_quantity"] if items else 1
            body["content"]["exportDeclaration"] = {
                "invoice": {
                    "number": _NON_ALPHANUMERIC.sub("", order["order_id"]),
                    "date": now.date().isoformat(),
                },
                "lineItems": [
                    {
                        "number": 1,
                        "description": "Custom Printed Playing Cards",
                        "price": declared_value,
                        "quantity": {"value": deck_quantity, "unitOfMeasurement": "BOX"},
                        "manufacturerCountry": settings.shipper_country_code,
                        "weight": {
                            "netValue": float(package.weight),
                            "grossValue": float(package.weight),
                        },
                    }
                ],
            }

        return body

    def _save_label(self, order_id: str, label_content: str) -> Path | None:
        """Decode and write the label PDF.

        The shipment already exists at the carrier by now, so a local
        write failure is logged rather than raised.
        """
        try:
            label_bytes = base64.b64decode(label_content, validate=True)
        except (binascii.Error, ValueError):
            logger.error("Shipping label for %s is not valid base64; label not stored", order_id)
            return None

        labels_dir = Path(self.settings.shipping_label_dir)
        label_path = labels_dir / f"label-{_NON_ALPHANUMERIC.sub('_', order_id)}.pdf"
        try:
            labels_dir.mkdir(parents=True, exist_ok=True)
            label_path.write_bytes(label_bytes)
        except OSError as e:
            logger.error("Could not write shipping label for %s to %s: %s", order_id, label_path, e)
            return None

        logger.info("Shipping label saved to: %s", label_path)
        return label_path


def normalize_rates(payload: dict[str, Any]) -> list[ShippingOption]:
    """Turn a carrier rates response into ShippingOptions, keeping order.

    Products without a usable total price are skipped.
    """
    options: list[ShippingOption] = []
    for product in payload.get("products") or []:
        total_prices = product.get("totalPrice") or []
        first_price = total_prices[0] if total_prices else {}
        raw_price = first_price.get("price")
        if raw_price is None:
            logger.warning("Skipping carrier product without a price: %s", product.get("productName"))
            continue
        try:
            price = Decimal(str(raw_price))
        except InvalidOperation:
            logger.warning("Skipping carrier product with unparseable price %r", raw_price)
            continue

        delivery = product.get("deliveryCapabilities") or {}
        options.append(
            ShippingOption(
                service_name=product.get("productName") or "Unknown service",
                price=price,
                currency=first_price.get("currency") or first_price.get("priceCurrency"),
                estimated_delivery=delivery.get("estimatedDeliveryDateAndTime"),
            )
        )
    return options
