"""Construction of stores and the process-wide rate limiter from settings."""

from typing import Optional

from gcra_limiter.core.config import Settings, settings
from gcra_limiter.core.logging import get_logger
from gcra_limiter.limiter import RateLimiter
from gcra_limiter.store.base import RateLimitStore
from gcra_limiter.store.memory import InMemoryStore
from gcra_limiter.store.redis import RedisStore
from gcra_limiter.store.redis_lua import verify_cas_script

logger = get_logger(__name__)


def create_store(config: Optional[Settings] = None) -> RateLimitStore:
    """Create the store selected by settings.

    Uses Redis when redis_enabled is set, otherwise an in-memory store that
    only coordinates callers within this process.
    """
    config = config or settings
    if config.redis_enabled:
        import redis.asyncio as aioredis

        verify_cas_script()
        client = aioredis.from_url(config.redis_url)
        logger.info("Using Redis rate limit store")
        return RedisStore(
            client,
            config.key_prefix,
            reconnect_on_readonly=config.reconnect_on_readonly,
        )
    logger.debug("Using in-memory rate limit store")
    return InMemoryStore(key_prefix=config.key_prefix)


def create_rate_limiter(
    store: Optional[RateLimitStore] = None,
    config: Optional[Settings] = None,
) -> RateLimiter:
    """Create a rate limiter configured from settings."""
    config = config or settings
    return RateLimiter(
        store or create_store(config),
        period=config.rate_limit_period_seconds,
        max_burst=config.rate_limit_max_burst,
        max_attempts=config.rate_limit_max_attempts,
    )


_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter(store: Optional[RateLimitStore] = None) -> RateLimiter:
    """Get the global rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = create_rate_limiter(store)
    return _rate_limiter


def reset_rate_limiter() -> None:
    """Reset the global rate limiter instance."""
    global _rate_limiter
    _rate_limiter = None


async def close_rate_limiter() -> None:
    """Close the global rate limiter's store and reset the instance.

    Call on application shutdown.
    """
    global _rate_limiter
    if _rate_limiter is not None:
        await _rate_limiter.close()
        _rate_limiter = None
