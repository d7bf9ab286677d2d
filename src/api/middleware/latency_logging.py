"""Request latency logging middleware."""

import logging
import time
from typing import Callable

from fastapi import Request, Response

logger = logging.getLogger(__name__)

SLOW_REQUEST_THRESHOLD_MS = 1000
VERY_SLOW_REQUEST_THRESHOLD_MS = 3000

# Probe endpoints are only logged when unusually slow
QUIET_PATHS = frozenset({"/health", "/health/ready"})


def _log_level(path: str, status_code: int, latency_ms: float, failed: bool) -> int | None:
    if path in QUIET_PATHS:
        return logging.DEBUG if latency_ms > 100 else None
    if failed or status_code >= 500 or latency_ms > VERY_SLOW_REQUEST_THRESHOLD_MS:
        return logging.ERROR
    if latency_ms > SLOW_REQUEST_THRESHOLD_MS or status_code >= 400:
        return logging.WARNING
    return logging.INFO


async def latency_logging_middleware(request: Request, call_next: Callable) -> Response:
    """Log method, path, status and latency of every request.

    Level is escalated for client errors, server errors and slow requests.

    Args:
        request: The incoming request.
        call_next: The next middleware/handler in the chain.

    Returns:
        Response: The response from the handler.
    """
    start_time = time.perf_counter()
    response = None
    failed = False

    try:
        response = await call_next(request)
        return response
    except Exception:
        failed = True
        raise
    finally:
        latency_ms = (time.perf_counter() - start_time) * 1000
        status_code = response.status_code if response else 500
        path = request.url.path

        level = _log_level(path, status_code, latency_ms, failed)
        if level is not None:
            prefix = "SLOW REQUEST: " if latency_ms > SLOW_REQUEST_THRESHOLD_MS else ""
            logger.log(
                level,
                "%s%s %s - %s - %.2fms",
                prefix,
                request.method,
                path,
                status_code,
                latency_ms,
                extra={"status_code": status_code, "latency_ms": round(latency_ms, 2)},
            )
