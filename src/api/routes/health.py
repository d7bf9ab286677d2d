"""Liveness and readiness probes."""

import logging
import time

from fastapi import APIRouter, Response, status

from src.core.config import get_settings
from src.core.database import check_database_connection
from src.schemas.common import DependencyCheck, HealthResponse, HealthStatus, ReadinessResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness check",
    description="Answers as long as the process is serving requests. No dependency is contacted.",
)
async def health_check() -> HealthResponse:
    settings = get_settings()
    return HealthResponse(status=HealthStatus.HEALTHY, service=settings.app_name, environment=settings.app_env)


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    responses={
        200: {"description": "Database reachable"},
        503: {"description": "Database unreachable"},
    },
    summary="Readiness check",
    description="Runs a round-trip query against the order database. Used for readiness probes.",
)
async def readiness_check(response: Response) -> ReadinessResponse:
    """Report whether the order database answers.

    Sets 503 on the response when it does not, so load balancers stop
    routing checkouts to this instance.
    """
    started = time.perf_counter()
    database = await check_database_connection()
    elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

    check = DependencyCheck(
        name="database",
        healthy=database["healthy"],
        latency_ms=elapsed_ms,
        error=database.get("error"),
    )
    if not check.healthy:
        logger.warning("Readiness check failed: database unreachable (%s)", check.error)
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status=HealthStatus.HEALTHY if check.healthy else HealthStatus.UNHEALTHY,
        checks=[check],
    )
