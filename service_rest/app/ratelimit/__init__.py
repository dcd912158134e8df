"""
Rate limiting package for the REST entry point.

Holds the fixed-window limiter, its counter stores (in-process or Redis)
and the middleware that enforces a per-client request budget.
"""

from .fixed_window import (
    FixedWindowRateLimiter,
    MemoryWindowStore,
    RateLimiterPolicy,
    RateLimitMiddleware,
    RateLimitResult,
    RedisWindowStore,
    get_client_id,
)

__all__ = [
    "FixedWindowRateLimiter",
    "MemoryWindowStore",
    "RateLimiterPolicy",
    "RateLimitMiddleware",
    "RateLimitResult",
    "RedisWindowStore",
    "get_client_id",
]
