"""Redis-backed store for GCRA bucket state.

Bucket values are stored as the decimal string form of the TAT in
nanoseconds. Expiries are sent to Redis in milliseconds.
"""

from typing import Any, Awaitable, Callable, TypeVar

from redis.asyncio import Redis
from redis.exceptions import NoScriptError, ReadOnlyError, ResponseError

from gcra_limiter.core.logging import get_logger
from gcra_limiter.store.base import RateLimitStore, ttl_nano_to_milli
from gcra_limiter.store.redis_lua import (
    CAS_SCRIPT,
    CAS_SCRIPT_MISSING_KEY_RESPONSE,
    CAS_SHA,
)

logger = get_logger(__name__)

T = TypeVar("T")


class RedisStore(RateLimitStore):
    """Redis store, expects all timestamps and durations in nanoseconds.

    The time used for decisions comes from the Redis TIME command, so every
    client agrees on elapsed time regardless of local clock skew.

    Recoverable server errors are retried at most once per call:
    - NOSCRIPT on the swap: the script is loaded again.
    - READONLY on a write: the connection pool is dropped and a fresh
      connection is opened, only when reconnect_on_readonly is set.
    """

    def __init__(
        self,
        redis: Redis,
        key_prefix: str,
        reconnect_on_readonly: bool = False,
    ) -> None:
        self._redis = redis
        self._key_prefix = key_prefix
        self._reconnect_on_readonly = reconnect_on_readonly

    def _full_key(self, key: str) -> str:
        return self._key_prefix + key

    async def get_with_time(self, key: str) -> tuple[int | None, int]:
        """Return the value of the key or None, and the Redis server time.

        TIME has microsecond precision; the result is scaled to nanoseconds.
        """
        pipe = self._redis.pipeline(transaction=False)
        pipe.time()
        pipe.get(self._full_key(key))
        time_response, value = await pipe.execute()

        seconds, micros = time_response
        now = (int(seconds) * 1_000_000 + int(micros)) * 1_000
        if value is not None:
            value = int(value)
        return value, now

    async def set_if_not_exists_with_ttl(self, key: str, value: int, ttl_nano: int) -> bool:
        full_key = self._full_key(key)
        ttl_milli = ttl_nano_to_milli(ttl_nano)
        result = await self._execute(
            lambda: self._redis.set(full_key, value, nx=True, px=ttl_milli)
        )
        return bool(result)

    async def compare_and_set_with_ttl(
        self, key: str, old_value: int, new_value: int, ttl_nano: int
    ) -> bool:
        full_key = self._full_key(key)
        ttl_milli = ttl_nano_to_milli(ttl_nano)
        try:
            swapped = await self._execute(
                lambda: self._redis.evalsha(
                    CAS_SHA, 1, full_key, old_value, new_value, ttl_milli
                ),
                reload_script=True,
            )
        except ResponseError as e:
            if str(e).startswith(CAS_SCRIPT_MISSING_KEY_RESPONSE):
                return False
            raise
        return int(swapped) == 1

    async def load_script(self) -> str:
        """Register the CAS script in the server's script cache."""
        sha = await self._redis.script_load(CAS_SCRIPT)
        logger.debug(f"Loaded CAS script into Redis script cache: {sha}")
        return sha

    async def _execute(
        self,
        command: Callable[[], Awaitable[T]],
        reload_script: bool = False,
    ) -> T:
        """Run a command, recovering from NOSCRIPT / READONLY at most once."""
        retried = False
        while True:
            try:
                return await command()
            except NoScriptError:
                if not reload_script or retried:
                    raise
                logger.warning("CAS script missing from Redis script cache, reloading")
                await self.load_script()
            except ReadOnlyError:
                if not self._reconnect_on_readonly or retried:
                    raise
                logger.warning("Connected to a read-only Redis replica, reconnecting")
                await self._reconnect()
            retried = True

    async def close(self) -> None:
        """Close the Redis connection."""
        await self._redis.aclose()

    async def _reconnect(self) -> None:
        # Idle pooled connections (including the one that hit READONLY) are
        # dropped so the next command dials the new primary. Connections
        # serving other callers are left alone.
        pool: Any = self._redis.connection_pool
        await pool.disconnect(inuse_connections=False)
