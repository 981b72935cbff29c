"""Rate limiting for the unauthenticated auth endpoints."""

import os
import time
from typing import NamedTuple

import structlog
from fastapi import HTTPException, Request, status

logger = structlog.get_logger(__name__)


class Bucket(NamedTuple):
    tokens: float
    updated_at: float
    requests: int


class RateLimiter:
    """In-memory token bucket limiter.

    Each key (endpoint scope plus client) gets ``burst_size`` tokens that
    refill at ``requests_per_minute``. Buckets live in process memory, so
    each worker limits independently.
    """

    def __init__(
        self,
        requests_per_minute: int = 10,
        burst_size: int = 5,
        cleanup_interval: int = 60,
    ):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Sustained requests per minute per key
            burst_size: Maximum burst requests allowed
            cleanup_interval: Seconds between sweeps of idle buckets
        """
        self.requests_per_minute = requests_per_minute
        self.burst_size = burst_size
        self.cleanup_interval = cleanup_interval

        self.buckets: dict[str, Bucket] = {}
        self.last_cleanup = time.time()

    @property
    def retry_after(self) -> int:
        return max(1, int(60 / self.requests_per_minute))

    def _current(self, key: str, now: float) -> Bucket:
        """Bucket for ``key`` with tokens refilled up to ``now``."""
        bucket = self.buckets.get(key)
        if bucket is None:
            return Bucket(float(self.burst_size), now, 0)

        refill = (now - bucket.updated_at) * (self.requests_per_minute / 60.0)
        return bucket._replace(tokens=min(bucket.tokens + refill, self.burst_size), updated_at=now)

    async def check_rate_limit(self, key: str) -> None:
        """Consume one token for ``key``.

        Raises:
            HTTPException: 429 with Retry-After when the bucket is empty
        """
        now = time.time()
        if now - self.last_cleanup > self.cleanup_interval:
            self._cleanup(now)

        bucket = self._current(key, now)
        if bucket.tokens < 1.0:
            self.buckets[key] = bucket
            logger.warning("rate_limit_exceeded", key=key, limit_per_minute=self.requests_per_minute)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "error": "Rate limit exceeded",
                    "message": f"Maximum {self.requests_per_minute} requests per minute allowed",
                    "retry_after": self.retry_after,
                },
                headers={"Retry-After": str(self.retry_after)},
            )

        self.buckets[key] = Bucket(bucket.tokens - 1.0, now, bucket.requests + 1)

    def _cleanup(self, now: float) -> None:
        """Forget buckets idle for two cleanup intervals."""
        cutoff = now - self.cleanup_interval * 2
        for key in [k for k, bucket in self.buckets.items() if bucket.updated_at < cutoff]:
            del self.buckets[key]
        self.last_cleanup = now

    def get_client_stats(self, key: str) -> dict:
        """Remaining tokens and request count for ``key``."""
        bucket = self._current(key, time.time())
        return {
            "tokens_available": int(bucket.tokens),
            "requests_remaining": int(bucket.tokens),
            "total_requests": bucket.requests,
            "limit_per_minute": self.requests_per_minute,
        }


# Shared limiter for register, login and resend-verification
auth_rate_limiter = RateLimiter(
    requests_per_minute=int(os.getenv("AUTH_RATE_LIMIT_PER_MINUTE", "10")),
    burst_size=int(os.getenv("AUTH_RATE_LIMIT_BURST", "5")),
)


async def check_rate_limit(request: Request) -> None:
    """FastAPI dependency limiting each client per endpoint.

    Example:
        @router.post("/login", dependencies=[Depends(check_rate_limit)])
        async def login(...):
            ...
    """
    client = getattr(request.state, "user_id", None)
    if not client:
        client = request.client.host if request.client else "unknown"

    await auth_rate_limiter.check_rate_limit(f"{request.url.path}:{client}")
