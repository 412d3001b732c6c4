"""Distributed rate limiting with the Generic Cell Rate Algorithm.

Admission decisions are coordinated across processes through a shared
store; the Redis store makes every update a server-side compare-and-swap.
"""

from gcra_limiter.exceptions import (
    InvalidRateLimitError,
    RateLimitExceededError,
    RateLimiterError,
    StoreUpdateFailedError,
)
from gcra_limiter.factory import (
    close_rate_limiter,
    create_rate_limiter,
    create_store,
    get_rate_limiter,
    reset_rate_limiter,
)
from gcra_limiter.limiter import RateLimiter
from gcra_limiter.models import RateLimitInfo, RateLimitResult
from gcra_limiter.store import InMemoryStore, RateLimitStore, RedisStore

__version__ = "0.1.0"

__all__ = [
    "RateLimiter",
    "RateLimitInfo",
    "RateLimitResult",
    "RateLimitStore",
    "InMemoryStore",
    "RedisStore",
    "RateLimiterError",
    "InvalidRateLimitError",
    "RateLimitExceededError",
    "StoreUpdateFailedError",
    "close_rate_limiter",
    "create_store",
    "create_rate_limiter",
    "get_rate_limiter",
    "reset_rate_limiter",
]
