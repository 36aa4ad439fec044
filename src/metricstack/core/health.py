"""
Health checker implementation for monitoring system dependencies.

Performs health checks for:
- Document store writability (or degraded-mode notice)
- Disk space availability
- Background services status
"""

import asyncio
import shutil
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog

from ..config import StoreSettings
from .store import JsonLinesDocumentStore
from .sweeper import BucketSweeper

logger = structlog.get_logger(__name__)


@dataclass
class HealthCheck:
    """Individual health check result."""
    name: str
    status: str  # "healthy", "degraded", "unhealthy"
    message: str
    details: Dict[str, Any]
    last_check: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "message": self.message,
            "details": self.details,
            "last_check": self.last_check,
        }


@dataclass
class HealthStatus:
    """Overall health status."""
    is_healthy: bool
    checks: Dict[str, HealthCheck]
    failed_checks: List[str]
    timestamp: float


class HealthChecker:
    """
    Health checker for MetricStack dependencies.

    Degraded mode (no store configured) is reported as "degraded" and does
    not make the service unready.
    """

    def __init__(
        self,
        store_settings: StoreSettings,
        store: Optional[Any] = None,
        sweeper: Optional[BucketSweeper] = None,
    ) -> None:
        self.store_settings = store_settings
        self.store = store
        self.sweeper = sweeper
        logger.info("Health Checker initialized")

    async def check_all(self) -> HealthStatus:
        """Perform all health checks and return overall status."""
        checks: Dict[str, HealthCheck] = {}
        failed_checks: List[str] = []

        check_results = await asyncio.gather(
            asyncio.to_thread(self._check_store),
            asyncio.to_thread(self._check_disk_space),
            asyncio.to_thread(self._check_sweeper),
            return_exceptions=True,
        )

        check_names = ["store", "disk", "sweeper"]
        for name, result in zip(check_names, check_results):
            if isinstance(result, BaseException):
                checks[name] = HealthCheck(
                    name=name,
                    status="unhealthy",
                    message=f"Check failed: {str(result)}",
                    details={"error": str(result), "error_type": type(result).__name__},
                    last_check=time.time(),
                )
                failed_checks.append(name)
            else:
                checks[name] = result
                if result.status == "unhealthy":
                    failed_checks.append(name)

        return HealthStatus(
            is_healthy=not failed_checks,
            checks=checks,
            failed_checks=failed_checks,
            timestamp=time.time(),
        )

    def _check_store(self) -> HealthCheck:
        """Check the store root exists and accepts writes."""
        if self.store is None:
            return HealthCheck(
                name="store",
                status="degraded",
                message="No document store configured, telemetry is dropped",
                details={"backend": self.store_settings.backend},
                last_check=time.time(),
            )

        if not isinstance(self.store, JsonLinesDocumentStore):
            return HealthCheck(
                name="store",
                status="healthy",
                message="External document store configured",
                details={"store_type": type(self.store).__name__},
                last_check=time.time(),
            )

        root = self.store.root_path
        if not root.is_dir():
            return HealthCheck(
                name="store",
                status="unhealthy",
                message="Store root is not a directory",
                details={"path": str(root)},
                last_check=time.time(),
            )

        probe = root / ".health_check"
        try:
            probe.write_text("ok")
            probe.unlink()
        except OSError as e:
            return HealthCheck(
                name="store",
                status="unhealthy",
                message=f"Store directory not writable: {str(e)}",
                details={"path": str(root), "error": str(e)},
                last_check=time.time(),
            )

        return HealthCheck(
            name="store",
            status="healthy",
            message="Document store writable",
            details={"path": str(root), "writable": True},
            last_check=time.time(),
        )

    def _check_disk_space(self) -> HealthCheck:
        """Check the store volume keeps the configured free ratio."""
        if self.store is None:
            return HealthCheck(
                name="disk",
                status="healthy",
                message="No local store, disk check skipped",
                details={},
                last_check=time.time(),
            )

        path = self.store_settings.root_path
        total, used, free = shutil.disk_usage(path)
        free_ratio = free / total if total else 0.0
        min_ratio = self.store_settings.disk_free_min_ratio

        if free_ratio >= min_ratio:
            status = "healthy"
            message = f"Disk space OK: {free_ratio * 100:.1f}% free"
        else:
            status = "unhealthy"
            message = f"Low disk space: {free_ratio * 100:.1f}% free (min: {min_ratio * 100:.1f}%)"

        return HealthCheck(
            name="disk",
            status=status,
            message=message,
            details={
                "path": str(path),
                "total_bytes": total,
                "used_bytes": used,
                "free_bytes": free,
                "free_percentage": round(free_ratio * 100, 1),
                "min_required_percentage": round(min_ratio * 100, 1),
            },
            last_check=time.time(),
        )

    def _check_sweeper(self) -> HealthCheck:
        """Check the bucket sweeper loop is alive."""
        if self.sweeper is None or not self.sweeper.is_healthy():
            return HealthCheck(
                name="sweeper",
                status="unhealthy",
                message="Bucket sweeper is not running",
                details={},
                last_check=time.time(),
            )
        return HealthCheck(
            name="sweeper",
            status="healthy",
            message="Bucket sweeper is running",
            details={"tracked_identities": self.sweeper.limiter.tracked_identities},
            last_check=time.time(),
        )
