"""Rate limiter for caller-facing endpoints.

Sliding-window log kept in Redis: one sorted set per key, scored by hit
time. Each hit trims entries older than the window, records itself, and
refreshes the key's TTL, so idle keys expire on their own.
Default: 60 hits per 60 seconds.
"""

import math
import time
import uuid
from dataclasses import dataclass

import redis.asyncio as redis
import structlog
from starlette.requests import Request

logger = structlog.get_logger(__name__)


@dataclass
class RateLimitResult:
    """Outcome of a single hit."""

    allowed: bool
    retry_after: int = 0


def get_client_ip(request: Request) -> str:
    """First address in X-Forwarded-For, else the socket peer, else 'unknown'."""
    header = request.headers.get("x-forwarded-for", "")
    ip = header.split(",")[0].strip()
    if ip:
        return ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class SlidingWindowRateLimiter:
    """
    Sliding-window rate limiter using Redis.

    Rejected hits are recorded too, so a caller that keeps hammering stays
    limited until it backs off for a full window.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        limit: int = 60,
        window_seconds: float = 60.0,
        key_prefix: str = "ratelimit",
    ):
        """
        Initialize the rate limiter.

        Args:
            redis_client: Redis client holding the counters
            limit: Hits allowed per window
            window_seconds: Window length
            key_prefix: Redis key prefix
        """
        self.redis = redis_client
        self.limit = limit
        self.window_seconds = window_seconds
        self.key_prefix = key_prefix

    def _get_key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    async def hit(self, key: str) -> RateLimitResult:
        """
        Record a hit for ``key`` and decide whether it is allowed.

        Returns:
            RateLimitResult; retry_after is whole seconds until the oldest
            hit in the window expires
        """
        redis_key = self._get_key(key)
        now = time.time()
        window_start = now - self.window_seconds

        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(redis_key, 0, window_start)
                pipe.zadd(redis_key, {f"{now}:{uuid.uuid4().hex}": now})
                pipe.zcard(redis_key)
                pipe.zrange(redis_key, 0, 0, withscores=True)
                pipe.expire(redis_key, math.ceil(self.window_seconds))
                _, _, count, oldest, _ = await pipe.execute()
        except Exception as e:
            logger.error("rate_limiter_error", error=str(e), key=key)
            # Fail open - allow request if Redis fails
            return RateLimitResult(allowed=True)

        if count <= self.limit:
            return RateLimitResult(allowed=True)

        oldest_score = oldest[0][1] if oldest else now
        retry_after = max(1, math.ceil(oldest_score + self.window_seconds - now))
        logger.info("rate_limited", key=key, hits=count, retry_after=retry_after)
        return RateLimitResult(allowed=False, retry_after=retry_after)
