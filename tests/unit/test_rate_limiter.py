"""Unit tests for the auth endpoint rate limiter."""

import pytest
from fastapi import HTTPException

from stackmentor.api.middleware.rate_limiter import RateLimiter


@pytest.mark.unit
class TestRateLimiter:
    """Token bucket behaviour."""

    async def test_allows_burst_then_rejects(self) -> None:
        """Test that requests beyond the burst are rejected with 429."""
        limiter = RateLimiter(requests_per_minute=6, burst_size=2)

        await limiter.check_rate_limit("10.0.0.1")
        await limiter.check_rate_limit("10.0.0.1")

        with pytest.raises(HTTPException) as exc_info:
            await limiter.check_rate_limit("10.0.0.1")

        assert exc_info.value.status_code == 429
        assert exc_info.value.headers["Retry-After"] == "10"

    async def test_clients_are_limited_independently(self) -> None:
        """Test that one client's usage does not affect another."""
        limiter = RateLimiter(requests_per_minute=6, burst_size=1)

        await limiter.check_rate_limit("10.0.0.1")
        await limiter.check_rate_limit("10.0.0.2")

        with pytest.raises(HTTPException):
            await limiter.check_rate_limit("10.0.0.1")

    async def test_tokens_refill_over_time(self, monkeypatch) -> None:
        """Test that tokens come back as time passes."""
        clock = [1000.0]
        monkeypatch.setattr("stackmentor.api.middleware.rate_limiter.time.time", lambda: clock[0])
        limiter = RateLimiter(requests_per_minute=60, burst_size=1)

        await limiter.check_rate_limit("10.0.0.1")
        with pytest.raises(HTTPException):
            await limiter.check_rate_limit("10.0.0.1")

        clock[0] += 1.5
        await limiter.check_rate_limit("10.0.0.1")

    async def test_client_stats(self) -> None:
        """Test the per-client usage report."""
        limiter = RateLimiter(requests_per_minute=10, burst_size=5)

        fresh = limiter.get_client_stats("new")
        assert fresh["total_requests"] == 0
        assert fresh["requests_remaining"] == 5
        assert "new" not in limiter.buckets

        await limiter.check_rate_limit("10.0.0.1")
        stats = limiter.get_client_stats("10.0.0.1")

        assert stats["total_requests"] == 1
        assert stats["requests_remaining"] == 4
        assert stats["limit_per_minute"] == 10

    async def test_idle_buckets_are_swept(self, monkeypatch) -> None:
        """Test that buckets idle for two intervals are forgotten."""
        clock = [1000.0]
        monkeypatch.setattr("stackmentor.api.middleware.rate_limiter.time.time", lambda: clock[0])
        limiter = RateLimiter(requests_per_minute=60, burst_size=1, cleanup_interval=10)

        await limiter.check_rate_limit("/api/auth/login:10.0.0.1")
        clock[0] += 25
        await limiter.check_rate_limit("/api/auth/login:10.0.0.2")

        assert set(limiter.buckets) == {"/api/auth/login:10.0.0.2"}
