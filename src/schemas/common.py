"""Schemas shared by every router: health probes and the error envelope."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(str, Enum):
    """Probe outcome."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Liveness probe body. Says the process is up, nothing about the database."""

    status: HealthStatus = Field(description="Always healthy when the process answers")
    service: str = Field(default="storefront-backend", description="Service name")
    version: str = Field(default="0.1.0", description="API version")
    environment: str | None = Field(default=None, description="Deployment environment")
    timestamp: datetime = Field(default_factory=_now, description="Probe time (UTC)")


class DependencyCheck(BaseModel):
    """Outcome of one readiness check."""

    model_config = ConfigDict(from_attributes=True)

    name: str = Field(description="Checked dependency")
    healthy: bool = Field(description="Whether the dependency answered")
    latency_ms: float | None = Field(default=None, description="Round-trip time in milliseconds")
    error: str | None = Field(default=None, description="Failure reason when unhealthy")


class ReadinessResponse(BaseModel):
    """Readiness probe body; unhealthy when any check fails."""

    status: HealthStatus = Field(description="Overall readiness")
    checks: list[DependencyCheck] = Field(default_factory=list, description="Per-dependency results")
    timestamp: datetime = Field(default_factory=_now, description="Probe time (UTC)")


class ErrorDetail(BaseModel):
    """One field-level or domain-level problem.

    `loc` points at the offending input, e.g. ["body", "items", "0", "quantity"]
    for a schema failure or ["product_id", "7"] for a stock shortage.
    """

    loc: list[str] | None = Field(default=None, description="Path to the offending input")
    msg: str = Field(description="Human-readable description")
    type: str = Field(description="Machine-readable error code")


class ErrorResponse(BaseModel):
    """Envelope of every non-2xx response."""

    error: str = Field(description="Error category, e.g. insufficient_stock")
    message: str = Field(description="Human-readable error description")
    details: list[ErrorDetail] | None = Field(default=None, description="Additional error details")
    request_id: str | None = Field(default=None, description="X-Request-ID of the failed request")
    timestamp: datetime = Field(default_factory=_now, description="Error time (UTC)")

    @classmethod
    def from_exception(
        cls,
        error_type: str,
        message: str,
        details: list[dict[str, Any]] | None = None,
        request_id: str | None = None,
    ) -> "ErrorResponse":
        """Build the envelope from an error's category, message and raw details.

        Detail dicts missing `msg` or `type` are filled with the dict's text
        and a generic `error` code.
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
