"""
Health check endpoints.

- /healthz: Liveness probe (always 200 if service alive)
- /readyz: Readiness probe (200 only if store writable, disk OK, sweeper running)
"""

from datetime import datetime, timezone
from typing import Any, Dict

import structlog
from fastapi import APIRouter, Request, Response, status

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get(
    "/healthz",
    status_code=200,
    summary="Liveness probe",
    description="""
    Liveness probe endpoint.

    Always returns 200 OK if the service is running.
    """,
)
async def liveness_check() -> Dict[str, Any]:
    """
    Liveness probe - always returns 200 if service is alive.
    """
    return {
        "status": "alive",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "metricstack",
        "version": "0.1.0",
    }


@router.get(
    "/readyz",
    summary="Readiness probe",
    description="""
    Readiness probe endpoint.

    Returns 200 only if all dependencies are healthy:
    - Document store writable (degraded mode is reported, not failed)
    - Disk free space above the configured ratio
    - Bucket sweeper running

    Returns 503 Service Unavailable otherwise.
    """,
)
async def readiness_check(request: Request, response: Response) -> Dict[str, Any]:
    """
    Readiness probe - returns 200 only if all dependencies are healthy.
    """
    health_checker = getattr(request.app.state, 'health_checker', None)

    if not health_checker:
        logger.warning("Health checker not initialized")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {
            "status": "not_ready",
            "reason": "health_checker_not_initialized",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    health_status = await health_checker.check_all()
    checks = {name: check.to_dict() for name, check in health_status.checks.items()}

    if health_status.is_healthy:
        response.status_code = status.HTTP_200_OK
        return {
            "status": "ready",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": checks,
        }

    logger.warning("Readiness check failed", failed_checks=health_status.failed_checks)
    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {
        "status": "not_ready",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
        "failed_checks": health_status.failed_checks,
    }
