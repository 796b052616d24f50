"""
Health Check Endpoints.

Both endpoints are public (no bearer token).

Endpoints:
- /health: Liveness check plus the number of connected stream clients
- /health/ready: Readiness check (database reachable)
"""

from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from den.backend.core.database import ping_database
from den.backend.core.dependencies import Notifier
from den.backend.core.logging import get_logger
from den.backend.core.utils import format_timestamp, utc_now

router = APIRouter()
logger = get_logger(__name__)


async def check_database() -> dict[str, Any]:
    """
    Check database connectivity.

    Returns:
        Dict with status, latency, and optional error message
    """
    start = utc_now()
    try:
        await ping_database()
    except Exception as e:
        logger.warning("Database health check failed", extra={"error": str(e)})
        return {"status": "unhealthy", "error": str(e)}

    latency_ms = int((utc_now() - start).total_seconds() * 1000)
    return {"status": "healthy", "latency_ms": latency_ms}


@router.get("/health")
async def health_check(notifier: Notifier) -> dict[str, Any]:
    """
    Liveness check.

    Returns 200 if the process is running. No dependency checks.
    """
    return {"ok": True, "clients": notifier.client_count}


@router.get("/health/ready")
async def readiness_check() -> Any:
    """
    Readiness check.

    Returns 503 if the database cannot be queried.
    """
    checks = {"database": await check_database()}

    unhealthy = [name for name, check in checks.items() if check["status"] != "healthy"]
    body = {
        "status": "unhealthy" if unhealthy else "healthy",
        "checks": checks,
        "timestamp": format_timestamp(utc_now()),
    }

    if unhealthy:
        logger.warning("Readiness check failed", extra={"unhealthy": unhealthy})
        return JSONResponse(status_code=503, content=body)

    return body
