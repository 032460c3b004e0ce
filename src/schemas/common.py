"""Schemas shared by every router: health checks, errors and pagination."""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(str, Enum):
    """Health check outcome."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Liveness check body."""

    status: HealthStatus = Field(description="Always healthy while the process serves requests")
    timestamp: datetime = Field(default_factory=_utcnow, description="Check time (UTC)")
    version: str = Field(default="0.1.0", description="API version")


class CheckResult(BaseModel):
    """Outcome of checking one backing service."""

    model_config = ConfigDict(from_attributes=True)

    name: str = Field(description="Backing service, e.g. database")
    healthy: bool = Field(description="Whether the check succeeded")
    latency_ms: float | None = Field(default=None, description="Check round trip in milliseconds")
    error: str | None = Field(default=None, description="Failure reason when unhealthy")


class ReadinessResponse(BaseModel):
    """Readiness check body; unhealthy if any check failed."""

    status: HealthStatus = Field(description="Aggregate of all checks")
    timestamp: datetime = Field(default_factory=_utcnow, description="Check time (UTC)")
    checks: list[CheckResult] = Field(default_factory=list, description="Per-service results")


class ErrorDetail(BaseModel):
    """One field-level or contextual error."""

    loc: list[str] | None = Field(default=None, description="Path to the offending field")
    msg: str = Field(description="What is wrong")
    type: str = Field(description="Machine-readable error kind")


class ErrorResponse(BaseModel):
    """Body of every non-2xx response raised by the application.

    ``error`` is the stable machine-readable category (``pricing_not_found``,
    ``duplicate_transaction``, ``carrier_unavailable``...). ``message`` is
    safe to show to end users; upstream payloads never appear in it.
    """

    error: str = Field(description="Error category for client handling")
    message: str = Field(description="Human-readable description")
    details: list[ErrorDetail] | None = Field(default=None, description="Field-level details")
    request_id: str | None = Field(default=None, description="Echo of the X-Request-ID header")
    timestamp: datetime = Field(default_factory=_utcnow, description="When the error was produced (UTC)")

    @classmethod
    def from_exception(
        cls,
        error_type: str,
        message: str,
        details: list[dict[str, Any]] | None = None,
        request_id: str | None = None,
    ) -> "ErrorResponse":
        """Build the body from an error's attributes.

        Args:
            error_type: Error category.
            message: Client-safe description.
            details: Optional dicts with ``loc``, ``msg`` and ``type`` keys.
            request_id: Optional request ID for tracing.

        Returns:
            ErrorResponse: The response body.
        """
        return cls(
            error=error_type,
            message=message,
            details=[
                ErrorDetail(loc=d.get("loc"), msg=d.get("msg", str(d)), type=d.get("type", "error"))
                for d in details
            ]
            if details
            else None,
            request_id=request_id,
        )


class PaginationMeta(BaseModel):
    """Pagination block of list responses."""

    model_config = ConfigDict(from_attributes=True)

    total: int = Field(ge=0, description="Total number of matching records")
    page: int = Field(ge=1, description="Current page (1-based)")
    limit: int = Field(ge=1, description="Page size")
    total_pages: int = Field(ge=0, description="Number of pages")

    @classmethod
    def for_page(cls, total: int, page: int, limit: int) -> "PaginationMeta":
        return cls(total=total, page=page, limit=limit, total_pages=math.ceil(total / limit))
