"""GCRA rate limiter.

Each bucket is a single theoretical arrival time (TAT) in the store. A
request of a given quantity moves the TAT forward by period * quantity and
is admitted while the TAT stays within the burst window
(delay_variation_tolerance) of the store's clock.

Admission is optimistic: the decision is computed from a snapshot and
written back with compare-and-swap against that snapshot. Losing the swap
means another caller changed the bucket, so the decision is recomputed
from a fresh read.
"""

from typing import Any

from gcra_limiter.core.logging import get_log_context, get_logger
from gcra_limiter.exceptions import (
    InvalidRateLimitError,
    RateLimitExceededError,
    StoreUpdateFailedError,
)
from gcra_limiter.models import RateLimitInfo, RateLimitResult
from gcra_limiter.store.base import RateLimitStore

logger = get_logger(__name__)

NANOS_PER_SECOND = 1_000_000_000
DEFAULT_MAX_ATTEMPTS = 10


class RateLimiter:
    """Distributed GCRA rate limiter.

    Stateless between calls; one instance can serve any number of
    concurrent callers. All coordination happens through the store.

    Example:
        >>> limiter = RateLimiter(store, period=1, max_burst=2)
        >>> limited, info = await limiter.limit("user:42")
    """

    def __init__(
        self,
        store: RateLimitStore,
        period: float,
        max_burst: int,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            store: Store holding the TAT of each bucket
            period: Seconds between requests of quantity 1 at the steady rate
            max_burst: Extra requests allowed above the steady rate
            max_attempts: Optimistic concurrency attempts per call

        A zero period makes the emission interval zero: requests never
        accrue debt, so every request is admitted. The remaining count,
        (dvt - reset_after) // emission_interval, is undefined for it and
        reports the full limit instead.
        """
        if period < 0:
            raise InvalidRateLimitError("period must not be negative")
        if max_burst < 0:
            raise InvalidRateLimitError("max_burst must not be negative")
        if max_attempts < 1:
            raise InvalidRateLimitError("max_attempts must be at least 1")

        self._store = store
        self._max_attempts = max_attempts
        self._emission_interval = round(period * NANOS_PER_SECOND)
        self._limit = max_burst + 1
        self._delay_variation_tolerance = self._emission_interval * self._limit
        self._zero_emission_interval = self._emission_interval == 0

    @property
    def limit_value(self) -> int:
        """Total burst capacity reported to callers."""
        return self._limit

    @property
    def emission_interval(self) -> int:
        return self._emission_interval

    @property
    def delay_variation_tolerance(self) -> int:
        return self._delay_variation_tolerance

    async def limit(self, key: Any, quantity: int = 1) -> RateLimitResult:
        """Decide whether a request of the given quantity may proceed.

        Args:
            key: Bucket name; non-string keys are converted with str()
            quantity: Units consumed by the request (at least 1)

        Returns:
            RateLimitResult; limited is True when the request was rejected

        Raises:
            InvalidRateLimitError: quantity is below 1
            StoreUpdateFailedError: every attempt lost its compare-and-swap
        """
        if quantity < 1:
            raise InvalidRateLimitError("quantity must be at least 1")
        key = key if isinstance(key, str) else str(key)
        dvt = self._delay_variation_tolerance
        increment = self._emission_interval * quantity

        for attempt in range(1, self._max_attempts + 1):
            stored_tat, now = await self._store.get_with_time(key)

            tat = now if stored_tat is None else max(stored_tat, now)
            new_tat = tat + increment
            allow_at = new_tat - dvt
            diff = now - allow_at

            if diff < 0:
                # Rejected: report the bucket as it is, nothing is written
                reset_after = tat - now
                retry_after = -diff if increment <= dvt else None
                result = self._result(True, reset_after, retry_after)
                logger.debug(
                    f"Rate limited key '{key}'",
                    extra=get_log_context(
                        rate_limit_key=key, quantity=quantity, limited=True, attempt=attempt
                    ),
                )
                return result

            reset_after = new_tat - now
            if await self._write(key, stored_tat, new_tat, reset_after):
                logger.debug(
                    f"Admitted key '{key}'",
                    extra=get_log_context(
                        rate_limit_key=key, quantity=quantity, limited=False, attempt=attempt
                    ),
                )
                return self._result(False, reset_after, None)

            logger.warning(
                f"Concurrent update of key '{key}', recomputing "
                f"(attempt {attempt}/{self._max_attempts})",
                extra=get_log_context(rate_limit_key=key, quantity=quantity, attempt=attempt),
            )

        logger.error(
            f"Giving up on key '{key}' after {self._max_attempts} attempts",
            extra=get_log_context(rate_limit_key=key, quantity=quantity),
        )
        raise StoreUpdateFailedError(key, self._max_attempts)

    async def close(self) -> None:
        """Close the underlying store."""
        await self._store.close()

    async def enforce(self, key: Any, quantity: int = 1) -> RateLimitInfo:
        """Like limit(), but raise RateLimitExceededError when limited."""
        limited, info = await self.limit(key, quantity)
        if limited:
            raise RateLimitExceededError(str(key), info)
        return info

    async def mark_overloaded(self, key: Any) -> bool:
        """Mark the bucket as fully consumed.

        Subsequent requests are rejected until the burst window drains,
        e.g. after a downstream reported it is overloaded.

        Returns:
            True once the new state is written

        Raises:
            StoreUpdateFailedError: every attempt lost its compare-and-swap
        """
        key = key if isinstance(key, str) else str(key)
        dvt = self._delay_variation_tolerance

        for attempt in range(1, self._max_attempts + 1):
            stored_tat, now = await self._store.get_with_time(key)
            if await self._write(key, stored_tat, now + dvt, dvt):
                logger.info(
                    f"Marked key '{key}' as overloaded",
                    extra=get_log_context(rate_limit_key=key, attempt=attempt),
                )
                return True

            logger.warning(
                f"Concurrent update of key '{key}' while marking overloaded, retrying "
                f"(attempt {attempt}/{self._max_attempts})",
                extra=get_log_context(rate_limit_key=key, attempt=attempt),
            )

        logger.error(
            f"Giving up marking key '{key}' as overloaded after {self._max_attempts} attempts",
            extra=get_log_context(rate_limit_key=key),
        )
        raise StoreUpdateFailedError(key, self._max_attempts)

    async def _write(
        self, key: str, stored_tat: int | None, new_tat: int, ttl_nano: int
    ) -> bool:
        if stored_tat is None:
            return await self._store.set_if_not_exists_with_ttl(key, new_tat, ttl_nano)
        return await self._store.compare_and_set_with_ttl(key, stored_tat, new_tat, ttl_nano)

    def _result(
        self, limited: bool, reset_after: int, retry_after: int | None
    ) -> RateLimitResult:
        if self._zero_emission_interval:
            remaining = self._limit
        else:
            remaining = max(
                0, (self._delay_variation_tolerance - reset_after) // self._emission_interval
            )
        return RateLimitResult(
            limited=limited,
            info=RateLimitInfo(
                limit=self._limit,
                remaining=remaining,
                reset_after=reset_after / NANOS_PER_SECOND,
                retry_after=None if retry_after is None else retry_after / NANOS_PER_SECOND,
            ),
        )
