"""
Fixed-window rate limiting.

Two stores share the same semantics: an in-process dict (default) and Redis
for deployments running more than one worker.
"""

import asyncio
import math
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Callable

import structlog
from redis import Redis
from redis.exceptions import ConnectionError as RedisConnectionError

from legal_graphrag.config import get_settings

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RateLimitPolicy:
    window_ms: int
    max_requests: int


HOUR_MS = 60 * 60 * 1000

RATE_LIMIT_POLICIES: dict[str, RateLimitPolicy] = {
    "chat": RateLimitPolicy(window_ms=HOUR_MS, max_requests=100),
    "upload": RateLimitPolicy(window_ms=24 * HOUR_MS, max_requests=10),
    "graphSearch": RateLimitPolicy(window_ms=HOUR_MS, max_requests=200),
    "webSearch": RateLimitPolicy(window_ms=HOUR_MS, max_requests=50),
}


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_time: int
    retry_after: int | None = None

    def headers(self) -> dict[str, str]:
        """``X-RateLimit-*`` headers for an allowed response."""
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_time),
        }


class RateLimitExceeded(Exception):
    """Raised by request dependencies when a caller is over its limit."""

    def __init__(self, result: RateLimitResult):
        self.result = result
        super().__init__(f"rate limit exceeded until {result.reset_time}")

    @property
    def message(self) -> str:
        reset = datetime.fromtimestamp(self.result.reset_time / 1000)
        stamp = f"{reset.year}/{reset.month}/{reset.day} {reset.hour}:{reset:%M:%S}"
        return f"リクエスト制限に達しました。{stamp}以降に再試行してください。"

    def body(self) -> dict:
        return {
            "error": "Rate limit exceeded",
            "message": self.message,
            "resetTime": self.result.reset_time,
        }

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.result.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(self.result.reset_time),
            "Retry-After": str(self.result.retry_after or 60),
        }


def _now_ms() -> int:
    return int(time.time() * 1000)


# =============================================================================
# In-memory store
# =============================================================================


class MemoryRateLimiter:
    """
    Per-process fixed-window counters keyed by ``"<endpoint>:<identifier>"``.
    """

    def __init__(
        self,
        policies: dict[str, RateLimitPolicy] | None = None,
        clock: Callable[[], int] = _now_ms,
    ):
        self.policies = policies or RATE_LIMIT_POLICIES
        self._clock = clock
        self._counts: dict[str, tuple[int, int]] = {}
        self._lock = threading.Lock()

    def check(self, identifier: str, endpoint: str) -> RateLimitResult:
        policy = self.policies[endpoint]
        key = f"{endpoint}:{identifier}"
        now = self._clock()

        with self._lock:
            record = self._counts.get(key)

            if record is None or record[1] < now:
                reset_time = now + policy.window_ms
                self._counts[key] = (1, reset_time)
                return RateLimitResult(
                    allowed=True,
                    limit=policy.max_requests,
                    remaining=policy.max_requests - 1,
                    reset_time=reset_time,
                )

            count, reset_time = record
            if count >= policy.max_requests:
                return RateLimitResult(
                    allowed=False,
                    limit=policy.max_requests,
                    remaining=0,
                    reset_time=reset_time,
                    retry_after=math.ceil((reset_time - now) / 1000),
                )

            count += 1
            self._counts[key] = (count, reset_time)
            return RateLimitResult(
                allowed=True,
                limit=policy.max_requests,
                remaining=policy.max_requests - count,
                reset_time=reset_time,
            )

    def sweep(self) -> int:
        """Drop expired windows. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, reset) in self._counts.items() if reset < now]
            for key in expired:
                del self._counts[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._counts)


# =============================================================================
# Redis store
# =============================================================================


class RedisRateLimiter:
    """
    Fixed-window counters in Redis using ``INCR`` + ``PEXPIRE``.

    Windows expire through key TTLs, so ``sweep`` has nothing to do.
    """

    def __init__(
        self,
        url: str | None = None,
        policies: dict[str, RateLimitPolicy] | None = None,
        client: Redis | None = None,
        clock: Callable[[], int] = _now_ms,
    ):
        self.url = url or get_settings().redis_url
        self.policies = policies or RATE_LIMIT_POLICIES
        self._client = client
        self._clock = clock

    @property
    def client(self) -> Redis:
        if self._client is None:
            self._client = Redis.from_url(self.url, decode_responses=True)
            logger.info("redis_connected", url=self.url)
        return self._client

    def check(self, identifier: str, endpoint: str) -> RateLimitResult:
        policy = self.policies[endpoint]
        key = f"ratelimit:{endpoint}:{identifier}"
        now = self._clock()

        pipe = self.client.pipeline()
        pipe.incr(key)
        pipe.pttl(key)
        count, ttl = pipe.execute()

        if count == 1 or ttl is None or ttl < 0:
            self.client.pexpire(key, policy.window_ms)
            ttl = policy.window_ms
        reset_time = now + int(ttl)

        if count > policy.max_requests:
            return RateLimitResult(
                allowed=False,
                limit=policy.max_requests,
                remaining=0,
                reset_time=reset_time,
                retry_after=math.ceil(int(ttl) / 1000),
            )

        return RateLimitResult(
            allowed=True,
            limit=policy.max_requests,
            remaining=policy.max_requests - count,
            reset_time=reset_time,
        )

    def sweep(self) -> int:
        return 0

    def health_check(self) -> bool:
        try:
            self.client.ping()
            return True
        except RedisConnectionError as e:
            logger.error("redis_health_check_failed", error=str(e))
            return False

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None


RateLimiter = MemoryRateLimiter | RedisRateLimiter


async def sweep_periodically(limiter: RateLimiter, interval: float) -> None:
    """Sweep expired windows every ``interval`` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        removed = limiter.sweep()
        if removed:
            logger.debug("rate_limit_swept", removed=removed)


@lru_cache()
def get_rate_limiter() -> RateLimiter:
    """Get the process-wide rate limiter for the configured backend."""
    settings = get_settings()
    if settings.rate_limit_backend == "redis":
        return RedisRateLimiter(settings.redis_url)
    return MemoryRateLimiter()
