"""
Admission limiter.

Per-source fixed-window request counting. Protects the local process from
being monopolized by a single source; it is not a fairness mechanism.
"""

import asyncio
import math
import time
from collections import OrderedDict
from typing import Optional, Tuple

import structlog

from .exceptions import RateLimitError

logger = structlog.get_logger(__name__)


def now_ms() -> int:
    """Current wall clock in epoch milliseconds."""
    return int(time.time() * 1000)


def resolve_client_identity(forwarded_for: Optional[str], peer_address: Optional[str]) -> str:
    """
    Derive the limiter key for a request.

    First component of X-Forwarded-For, else the direct peer, else "".
    Callers behind a shared proxy that does not forward collapse to one identity.
    """
    source = forwarded_for or peer_address or ""
    return source.split(",")[0].strip()


class FixedWindowBucket:
    """Request counter for one identity within one window."""

    def __init__(self, window_start: int) -> None:
        self.window_start = window_start
        self.count = 0

    def is_expired(self, now: int, window_ms: int) -> bool:
        return now - self.window_start > window_ms

    def hit(self, now: int, window_ms: int) -> int:
        """Count a request, opening a fresh window if the old one elapsed."""
        if self.is_expired(now, window_ms):
            self.window_start = now
            self.count = 0
        self.count += 1
        return self.count

    def get_retry_after(self, now: int, window_ms: int) -> int:
        """Seconds until the current window closes."""
        remaining_ms = self.window_start + window_ms - now
        return max(1, math.ceil(remaining_ms / 1000))


class AdmissionLimiter:
    """
    Per-identity fixed-window limiter.

    Buckets are created lazily, kept in LRU order and capped at
    ``max_identities``; ``sweep`` drops buckets whose window has elapsed.
    """

    def __init__(
        self,
        max_requests: int = 300,
        window_seconds: int = 60,
        max_identities: int = 10000,
    ) -> None:
        self.max_requests = max_requests
        self.window_ms = window_seconds * 1000
        self.max_identities = max_identities
        self.buckets: "OrderedDict[str, FixedWindowBucket]" = OrderedDict()
        self.lock = asyncio.Lock()

    async def allow(self, identity: str) -> bool:
        """Count a request for identity and report whether it is admitted."""
        allowed, _ = await self._hit(identity)
        return allowed

    async def check(self, identity: str) -> None:
        """
        Count a request for identity.

        Raises RateLimitError if the window's maximum is exceeded.
        """
        allowed, bucket = await self._hit(identity)
        if allowed:
            logger.debug(
                "Admission check passed",
                identity=identity,
                count=bucket.count,
                max_requests=self.max_requests,
            )
            return

        retry_after = bucket.get_retry_after(now_ms(), self.window_ms)
        logger.warning(
            "Rate limit exceeded",
            identity=identity,
            count=bucket.count,
            max_requests=self.max_requests,
            retry_after=retry_after,
        )
        raise RateLimitError(
            message="Rate limit exceeded for source",
            retry_after=retry_after,
        )

    async def _hit(self, identity: str) -> Tuple[bool, FixedWindowBucket]:
        async with self.lock:
            now = now_ms()
            bucket = self.buckets.get(identity)
            if bucket is None:
                bucket = FixedWindowBucket(window_start=now)
                self.buckets[identity] = bucket
                self._evict_overflow()
            else:
                self.buckets.move_to_end(identity)

            count = bucket.hit(now, self.window_ms)
            return count <= self.max_requests, bucket

    def _evict_overflow(self) -> None:
        while len(self.buckets) > self.max_identities:
            evicted, _ = self.buckets.popitem(last=False)
            logger.debug("Evicted least recently seen identity", identity=evicted)

    async def sweep(self) -> int:
        """Drop buckets whose window has elapsed. Returns how many were removed."""
        async with self.lock:
            now = now_ms()
            expired = [
                identity
                for identity, bucket in self.buckets.items()
                if bucket.is_expired(now, self.window_ms)
            ]
            for identity in expired:
                del self.buckets[identity]

        if expired:
            logger.info("Swept expired rate buckets", removed=len(expired), remaining=len(self.buckets))
        return len(expired)

    @property
    def tracked_identities(self) -> int:
        return len(self.buckets)
