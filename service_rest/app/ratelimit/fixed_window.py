"""
Fixed-window rate limiter for the REST entry point.
"""

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import redis.asyncio as redis
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from shared.config import RestConfig
from shared.errors import RateLimitExceeded
from shared.logging import get_logger, set_client_context
from shared.metrics import MetricsCollector


@dataclass(frozen=True)
class RateLimiterPolicy:
    """Window length and per-window cap, fixed at startup."""

    window_ms: int
    max_requests: int
    enabled: bool = True

    @classmethod
    def from_config(cls, config: RestConfig) -> "RateLimiterPolicy":
        return cls(
            window_ms=config.rate_limiter_window_ms,
            max_requests=config.rate_limiter_max,
            enabled=config.rate_limiter_enabled,
        )


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    current_count: int
    remaining: int
    reset_in_seconds: int
    error: Optional[str] = None

    def headers(self) -> Dict[str, str]:
        """Standard ``RateLimit-*`` response headers."""
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(self.reset_in_seconds),
        }


class MemoryWindowStore:
    """In-process counters, one window per key.

    All reads and writes go through a single lock so concurrent requests
    from the same client can never undercount.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, cleanup_interval: float = 300.0):
        self._clock = clock
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._lock = asyncio.Lock()
        self._cleanup_interval = cleanup_interval
        self._last_cleanup = clock()

    def _prune(self, now: float):
        if now - self._last_cleanup < self._cleanup_interval:
            return
        expired = [key for key, (_, reset_at) in self._windows.items() if reset_at <= now]
        for key in expired:
            del self._windows[key]
        self._last_cleanup = now

    async def increment(self, key: str, window_ms: int) -> Tuple[int, int]:
        """Count one hit; return the new count and milliseconds until reset."""
        async with self._lock:
            now = self._clock()
            self._prune(now)
            count, reset_at = self._windows.get(key, (0, 0.0))
            if reset_at <= now:
                count, reset_at = 0, now + window_ms / 1000.0
            count += 1
            self._windows[key] = (count, reset_at)
            return count, max(0, int((reset_at - now) * 1000))

    async def get(self, key: str) -> Tuple[int, int]:
        async with self._lock:
            now = self._clock()
            count, reset_at = self._windows.get(key, (0, 0.0))
            if reset_at <= now:
                return 0, 0
            return count, int((reset_at - now) * 1000)

    async def reset(self, key: str) -> None:
        async with self._lock:
            self._windows.pop(key, None)

    async def close(self) -> None:
        return None


class RedisWindowStore:
    """Counters shared by every process pointing at the same Redis."""

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    async def increment(self, key: str, window_ms: int) -> Tuple[int, int]:
        redis_client = await self._get_redis()
        async with redis_client.pipeline(transaction=True) as pipeline:
            pipeline.incr(key)
            pipeline.pttl(key)
            count, ttl = await pipeline.execute()

        # First hit of a window (or a key that lost its expiry)
        if ttl is None or ttl < 0:
            await redis_client.pexpire(key, window_ms)
            ttl = window_ms
        return int(count), int(ttl)

    async def get(self, key: str) -> Tuple[int, int]:
        redis_client = await self._get_redis()
        value = await redis_client.get(key)
        if value is None:
            return 0, 0
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        ttl = await redis_client.pttl(key)
        return int(value), max(0, int(ttl))

    async def reset(self, key: str) -> None:
        redis_client = await self._get_redis()
        await redis_client.delete(key)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


class FixedWindowRateLimiter:
    """Counts requests per client in discrete, non-overlapping windows."""

    def __init__(self, policy: RateLimiterPolicy, store: Optional[Any] = None):
        self.policy = policy
        self.store = store if store is not None else MemoryWindowStore()
        self.logger = get_logger("rest.rate_limiter")

    @classmethod
    def from_config(cls, config: RestConfig) -> "FixedWindowRateLimiter":
        policy = RateLimiterPolicy.from_config(config)
        if config.rate_limiter_redis_url:
            return cls(policy, RedisWindowStore(config.rate_limiter_redis_url))
        return cls(policy)

    def _make_key(self, client_id: str) -> str:
        """Generate rate limit key."""
        return f"rate_limit:{client_id}"

    def _result(self, count: int, ttl_ms: int, error: Optional[str] = None) -> RateLimitResult:
        limit = self.policy.max_requests
        return RateLimitResult(
            allowed=count <= limit,
            limit=limit,
            current_count=count,
            remaining=max(0, limit - count),
            reset_in_seconds=math.ceil(ttl_ms / 1000),
            error=error,
        )

    async def check_rate_limit(self, client_id: str) -> RateLimitResult:
        """Count the request and report whether it fits in the current window."""
        try:
            count, ttl_ms = await self.store.increment(self._make_key(client_id), self.policy.window_ms)
        except Exception as e:
            # A broken counter store must not take the API down with it
            self.logger.error("Rate limit check error", client_id=client_id, error=str(e))
            return self._result(0, self.policy.window_ms, error=str(e))

        result = self._result(count, ttl_ms)
        if not result.allowed:
            self.logger.warning(
                "Rate limit exceeded",
                client_id=client_id,
                current_count=count,
                limit=self.policy.max_requests,
            )
        return result

    async def get_rate_limit_status(self, client_id: str) -> RateLimitResult:
        """Current window for a client without counting a hit."""
        count, ttl_ms = await self.store.get(self._make_key(client_id))
        return self._result(count, ttl_ms)

    async def reset_rate_limit(self, client_id: str) -> None:
        """Drop a client's window so its next request starts a fresh one."""
        await self.store.reset(self._make_key(client_id))
        self.logger.info("Rate limit reset", client_id=client_id)

    async def close(self) -> None:
        await self.store.close()


def get_client_id(request: Request, trust_proxy: bool = False) -> str:
    """Identity used to key the rate limiter.

    Forwarding headers are only honoured behind a trusted proxy; otherwise a
    caller could pick a fresh identity per request.
    """
    if trust_proxy:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rejects requests over the window cap before any handler runs."""

    def __init__(self, app, rate_limiter: FixedWindowRateLimiter,
                 metrics: Optional[MetricsCollector] = None, trust_proxy: bool = False):
        super().__init__(app)
        self.rate_limiter = rate_limiter
        self.metrics = metrics
        self.trust_proxy = trust_proxy

    async def dispatch(self, request: Request, call_next):
        client_id = get_client_id(request, self.trust_proxy)
        set_client_context(client_id)
        result = await self.rate_limiter.check_rate_limit(client_id)

        if not result.allowed:
            if self.metrics:
                self.metrics.record_rate_limit_hit()
            error = RateLimitExceeded(details={
                "limit": result.limit,
                "reset_in_seconds": result.reset_in_seconds,
            })
            headers = result.headers()
            headers["Retry-After"] = str(result.reset_in_seconds)
            return JSONResponse(
                status_code=error.status_code,
                content=error.to_response().model_dump(),
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(result.headers())
        return response
