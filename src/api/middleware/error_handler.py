"""Global error handling middleware for consistent error responses."""

import logging
import traceback
from typing import Any, Callable

from fastapi import HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)

UPSTREAM_UNAVAILABLE_MESSAGE = "An upstream service is unavailable. Please try again shortly."


class APIError(Exception):
    """Base exception for API errors.

    Use this class to raise application-specific errors that should
    be returned to the client with a specific status code and message.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_type: str = "api_error",
        details: list[dict[str, Any]] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Initialize API error.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code to return.
            error_type: Error category/type for client handling.
            details: Optional additional error details.
            headers: Optional response headers, e.g. WWW-Authenticate.
        """
        self.message = message
        self.status_code = status_code
        self.error_type = error_type
        self.details = details
        self.headers = headers
        super().__init__(message)


class NotFoundError(APIError):
    """Resource not found error."""

    def __init__(
        self,
        message: str = "Resource not found",
        details: list[dict[str, Any]] | None = None,
        error_type: str = "not_found",
    ) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_type=error_type,
            details=details,
        )


class ValidationError(APIError):
    """Request validation error."""

    def __init__(
        self,
        message: str = "Validation error",
        details: list[dict[str, Any]] | None = None,
        error_type: str = "validation_error",
    ) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_type=error_type,
            details=details,
        )


class AuthenticationError(APIError):
    """Authentication failure error."""

    def __init__(self, message: str = "Authentication required", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_type="authentication_error",
            details=details,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(APIError):
    """Authorization failure error."""

    def __init__(self, message: str = "Access denied", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_type="authorization_error",
            details=details,
        )


class CardTypeNotFoundError(NotFoundError):
    """No pricing rule exists for the requested card type."""

    def __init__(self, card_type: str) -> None:
        self.card_type = card_type
        super().__init__(
            message=f'Pricing for card type "{card_type}" not found.',
            error_type="pricing_not_found",
        )


class TierNotFoundError(NotFoundError):
    """No deck-quantity tier matches the requested quantity."""

    def __init__(self, deck_quantity: int) -> None:
        self.deck_quantity = deck_quantity
        super().__init__(
            message=f'Pricing tier for deck quantity "{deck_quantity}" not found.',
            error_type="pricing_not_found",
        )


class CardPriceNotFoundError(NotFoundError):
    """The matched tier has no price for the requested cards per deck."""

    def __init__(self, cards_per_deck: int) -> None:
        self.cards_per_deck = cards_per_deck
        super().__init__(
            message=f'Pricing for "{cards_per_deck}" cards per deck not found in the selected tier.',
            error_type="pricing_not_found",
        )


class NoRatesAvailableError(NotFoundError):
    """The carrier returned no shipping options for the destination."""

    def __init__(self, message: str = "Could not find any shipping options for the provided address.") -> None:
        super().__init__(message=message, error_type="no_rates_available")


class UnsupportedPaymentMethodError(ValidationError):
    """The requested payment method has no verifier."""

    def __init__(self, payment_method: str) -> None:
        self.payment_method = payment_method
        super().__init__(
            message=f'Payment method "{payment_method}" is not supported.',
            error_type="unsupported_payment_method",
        )


class PaymentVerificationFailedError(APIError):
    """The gateway record did not confirm the expected payment."""

    def __init__(self, message: str = "Payment verification failed.") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            error_type="payment_verification_failed",
        )


class InvalidStatusTransitionError(APIError):
    """The requested order status is not reachable from the current one."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(
            message=f'Cannot transition order from "{current}" to "{target}".',
            status_code=status.HTTP_409_CONFLICT,
            error_type="invalid_status_transition",
        )


class OrderConflictError(APIError):
    """The order changed between being read and being written."""

    def __init__(self, order_id: str) -> None:
        self.order_id = order_id
        super().__init__(
            message=f"Order {order_id} was modified by another request. Reload and try again.",
            status_code=status.HTTP_409_CONFLICT,
            error_type="order_conflict",
        )


class DuplicateTransactionError(APIError):
    """A payment transaction was already used by another order."""

    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        super().__init__(
            message="This payment transaction has already been used for another order.",
            status_code=status.HTTP_409_CONFLICT,
            error_type="duplicate_transaction",
        )


class UpstreamGatewayError(APIError):
    """A carrier or payment gateway call failed or timed out.

    The client-facing message is always generic; ``upstream_detail`` keeps
    what the upstream said for logging.
    """

    def __init__(
        self,
        service: str,
        upstream_detail: str,
        retryable: bool = True,
        error_type: str = "upstream_error",
    ) -> None:
        self.service = service
        self.upstream_detail = upstream_detail
        self.retryable = retryable
        super().__init__(
            message=UPSTREAM_UNAVAILABLE_MESSAGE,
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_type=error_type,
        )

    def __str__(self) -> str:
        return f"{self.service} API Error: {self.upstream_detail}"


class CarrierUnavailableError(UpstreamGatewayError):
    """The shipping carrier could not be reached or rejected the request."""

    def __init__(self, upstream_detail: str, retryable: bool = True) -> None:
        super().__init__(
            service="DHL",
            upstream_detail=upstream_detail,
            retryable=retryable,
            error_type="carrier_unavailable",
        )


class ConfigurationError(APIError):
    """Credentials or endpoints for an external service are missing."""

    def __init__(self, message: str) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_type="configuration_error",
        )


def create_error_response(
    error_type: str,
    message: str,
    status_code: int,
    details: list[dict[str, Any]] | None = None,
    request_id: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Create a standardized JSON error response.

    Args:
        error_type: Error category for client handling.
        message: Human-readable error description.
        status_code: HTTP status code.
        details: Optional error details.
        request_id: Optional request ID for tracing.
        headers: Optional extra response headers.

    Returns:
        JSONResponse: Formatted error response.
    """
    error_response = ErrorResponse.from_exception(
        error_type=error_type,
        message=message,
        details=details,
        request_id=request_id,
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


def _log_api_error(error: APIError, request_id: str | None) -> None:
    if isinstance(error, UpstreamGatewayError):
        logger.error(
            "Upstream error (%s, retryable=%s): %s",
            error.service,
            error.retryable,
            error.upstream_detail,
            extra={"request_id": request_id},
        )
    elif error.status_code >= 500:
        logger.error(
            "API error: %s - %s",
            error.error_type,
            error.message,
            extra={"request_id": request_id},
        )
    else:
        logger.warning(
            "API error: %s - %s",
            error.error_type,
            error.message,
            extra={"request_id": request_id, "status_code": error.status_code},
        )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Exception handler for APIError raised inside route handlers or dependencies."""
    request_id = request.headers.get("X-Request-ID")
    _log_api_error(exc, request_id)
    return create_error_response(
        error_type=exc.error_type,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        request_id=request_id,
        headers=exc.headers,
    )


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer malformed request bodies with 400 and field-level details."""
    request_id = request.headers.get("X-Request-ID")
    details = [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": error.get("msg", "Invalid value"),
            "type": error.get("type", "value_error"),
        }
        for error in exc.errors()
    ]
    logger.warning(
        "Request validation failed: %s",
        details,
        extra={"request_id": request_id},
    )
    return create_error_response(
        error_type="validation_error",
        message="Request validation failed",
        status_code=status.HTTP_400_BAD_REQUEST,
        details=details,
        request_id=request_id,
    )


async def error_handler_middleware(request: Request, call_next: Callable[[Request], Any]) -> Response:
    """Middleware to catch and format all exceptions.

    Ensures consistent error response format across the application.
    Logs full stack traces for debugging while returning safe messages to clients.

    Args:
        request: The incoming request.
        call_next: Next middleware or route handler.

    Returns:
        Response: Either the successful response or formatted error response.
    """
    request_id = request.headers.get("X-Request-ID")

    try:
        response = await call_next(request)
        return response

    except APIError as e:
        _log_api_error(e, request_id)
        return create_error_response(
            error_type=e.error_type,
            message=e.message,
            status_code=e.status_code,
            details=e.details,
            request_id=request_id,
            headers=e.headers,
        )

    except HTTPException as e:
        logger.warning(
            "HTTP exception: %s - %s",
            e.status_code,
            e.detail,
            extra={"request_id": request_id},
        )
        return create_error_response(
            error_type="http_error",
            message=str(e.detail),
            status_code=e.status_code,
            request_id=request_id,
        )

    except Exception as e:
        logger.error(
            "Unhandled exception: %s\n%s",
            str(e),
            traceback.format_exc(),
            extra={"request_id": request_id},
        )
        return create_error_response(
            error_type="internal_error",
            message="An unexpected error occurred",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            request_id=request_id,
        )
