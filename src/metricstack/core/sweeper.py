"""
Background service that evicts expired rate-limit buckets.

Manages the sweep loop lifecycle alongside the application.
"""

import asyncio
from typing import Optional

import structlog

from .limiter import AdmissionLimiter
from .metrics import MetricsCollector

logger = structlog.get_logger(__name__)


class BucketSweeper:
    """
    Periodically sweeps an AdmissionLimiter.

    Features:
    - Automatic startup/shutdown
    - Periodic eviction of buckets with elapsed windows
    """

    def __init__(
        self,
        limiter: AdmissionLimiter,
        sweep_interval_seconds: int = 60,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.limiter = limiter
        self.sweep_interval = sweep_interval_seconds
        self.metrics = metrics
        self._task: Optional[asyncio.Task[None]] = None
        self._running = False

        logger.info("Bucket Sweeper initialized", interval_seconds=sweep_interval_seconds)

    async def start(self) -> None:
        """Start the sweep loop."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run_sweep_loop())

        logger.info("Bucket Sweeper started")

    async def stop(self) -> None:
        """Stop the sweep loop."""
        if not self._running:
            return

        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Bucket Sweeper stopped")

    async def sweep_once(self) -> int:
        removed = await self.limiter.sweep()
        if self.metrics:
            self.metrics.update_limiter_metrics(self.limiter.tracked_identities)
        return removed

    async def _run_sweep_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.sweep_interval)
                await self.sweep_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Sweep loop error", error=str(e), error_type=type(e).__name__)

    def is_healthy(self) -> bool:
        return self._running and self._task is not None and not self._task.done()
