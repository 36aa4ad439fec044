"""
Tests for the AdmissionLimiter fixed-window counter.

Tests per-identity windows, reset after the window elapses, bounded
bucket growth and identity resolution.
"""

import asyncio
from unittest.mock import patch

import pytest

from metricstack.core.exceptions import RateLimitError
from metricstack.core.limiter import AdmissionLimiter, FixedWindowBucket, resolve_client_identity


class TestAdmissionWindow:
    """Test the fixed window admission policy."""

    @pytest.mark.asyncio
    async def test_exactly_max_requests_allowed(self) -> None:
        """M requests pass, the (M+1)th is rejected."""

        limiter = AdmissionLimiter(max_requests=3, window_seconds=60)
        results = [await limiter.allow("10.0.0.1") for _ in range(4)]
        assert results == [True, True, True, False]

    @pytest.mark.asyncio
    async def test_window_resets_after_elapsing(self) -> None:
        """After the window elapses the counter starts over."""

        limiter = AdmissionLimiter(max_requests=2, window_seconds=60)
        with patch("time.time") as mock_time:
            mock_time.return_value = 1000.0
            assert await limiter.allow("10.0.0.1") is True
            assert await limiter.allow("10.0.0.1") is True
            assert await limiter.allow("10.0.0.1") is False

            mock_time.return_value = 1061.0
            assert await limiter.allow("10.0.0.1") is True
            assert limiter.buckets["10.0.0.1"].count == 1
            assert limiter.buckets["10.0.0.1"].window_start == 1061000

    @pytest.mark.asyncio
    async def test_window_boundary_is_inclusive(self) -> None:
        """A request exactly one window after the start still counts in that window."""

        limiter = AdmissionLimiter(max_requests=1, window_seconds=60)
        with patch("time.time") as mock_time:
            mock_time.return_value = 1000.0
            assert await limiter.allow("10.0.0.1") is True

            mock_time.return_value = 1060.0
            assert await limiter.allow("10.0.0.1") is False

    @pytest.mark.asyncio
    async def test_rejected_requests_still_count(self) -> None:
        """Over-limit requests keep incrementing the counter."""

        limiter = AdmissionLimiter(max_requests=1, window_seconds=60)
        for _ in range(3):
            await limiter.allow("10.0.0.1")
        assert limiter.buckets["10.0.0.1"].count == 3

    @pytest.mark.asyncio
    async def test_per_identity_isolation(self) -> None:
        """Exhausting one identity does not affect another."""

        limiter = AdmissionLimiter(max_requests=1, window_seconds=60)
        assert await limiter.allow("10.0.0.1") is True
        assert await limiter.allow("10.0.0.1") is False
        assert await limiter.allow("10.0.0.2") is True

    @pytest.mark.asyncio
    async def test_concurrent_requests(self) -> None:
        """Concurrent checks for one identity admit exactly the maximum."""

        limiter = AdmissionLimiter(max_requests=3, window_seconds=60)
        results = await asyncio.gather(*[limiter.allow("10.0.0.1") for _ in range(5)])
        assert results.count(True) == 3
        assert results.count(False) == 2


class TestCheck:
    """Test the raising variant used by the pipeline."""

    @pytest.mark.asyncio
    async def test_check_raises_with_retry_after(self) -> None:
        limiter = AdmissionLimiter(max_requests=1, window_seconds=60)
        with patch("time.time") as mock_time:
            mock_time.return_value = 1000.0
            await limiter.check("10.0.0.1")

            mock_time.return_value = 1015.5
            with pytest.raises(RateLimitError) as exc_info:
                await limiter.check("10.0.0.1")

        assert exc_info.value.status_code == 429
        assert exc_info.value.error_code == "rate_limited"
        assert exc_info.value.retry_after == 45

    def test_retry_after_is_at_least_one_second(self) -> None:
        bucket = FixedWindowBucket(window_start=0)
        assert bucket.get_retry_after(now=59_999, window_ms=60_000) == 1
        assert bucket.get_retry_after(now=70_000, window_ms=60_000) == 1


class TestBucketBounds:
    """Test bucket map growth is bounded."""

    @pytest.mark.asyncio
    async def test_lru_eviction(self) -> None:
        """The least recently seen identity is dropped past the cap."""

        limiter = AdmissionLimiter(max_requests=5, window_seconds=60, max_identities=2)
        await limiter.allow("a")
        await limiter.allow("b")
        await limiter.allow("a")
        await limiter.allow("c")

        assert list(limiter.buckets.keys()) == ["a", "c"]
        assert limiter.tracked_identities == 2

    @pytest.mark.asyncio
    async def test_sweep_removes_expired_buckets(self) -> None:
        limiter = AdmissionLimiter(max_requests=5, window_seconds=60)
        with patch("time.time") as mock_time:
            mock_time.return_value = 1000.0
            await limiter.allow("old")

            mock_time.return_value = 1050.0
            await limiter.allow("recent")

            mock_time.return_value = 1070.0
            removed = await limiter.sweep()

        assert removed == 1
        assert "old" not in limiter.buckets
        assert "recent" in limiter.buckets


class TestIdentityResolution:
    """Test source identity derivation."""

    def test_forwarded_for_first_hop(self) -> None:
        assert resolve_client_identity("203.0.113.7, 10.0.0.1", "10.0.0.2") == "203.0.113.7"

    def test_forwarded_for_single(self) -> None:
        assert resolve_client_identity(" 203.0.113.7 ", "10.0.0.2") == "203.0.113.7"

    def test_peer_address_fallback(self) -> None:
        assert resolve_client_identity(None, "10.0.0.2") == "10.0.0.2"
        assert resolve_client_identity("", "10.0.0.2") == "10.0.0.2"

    def test_empty_when_unknown(self) -> None:
        assert resolve_client_identity(None, None) == ""
