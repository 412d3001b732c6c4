"""Store abstraction for GCRA bucket state.

All timestamps and durations are integers in nanoseconds since the UNIX
epoch. Keys are logical; each store applies its own namespace prefix.
"""

from abc import ABC, abstractmethod

NANOS_PER_MILLI = 1_000_000


def ttl_nano_to_milli(ttl_nano: int) -> int:
    """Convert a TTL from nanoseconds to milliseconds.

    Anything below one millisecond is rounded up to 1 ms: an expiry of zero
    is rejected by Redis and a negative one would delete the key.
    """
    ttl_milli = ttl_nano // NANOS_PER_MILLI
    if ttl_milli < 1:
        return 1
    return ttl_milli


class RateLimitStore(ABC):
    """Abstract base class for rate limit stores.

    Implementations must take "now" from the same authoritative clock for
    every caller, and must make compare_and_set_with_ttl a single
    indivisible operation.
    """

    @abstractmethod
    async def get_with_time(self, key: str) -> tuple[int | None, int]:
        """Read the stored value and the store's current time.

        Args:
            key: The logical bucket key.

        Returns:
            Tuple of (stored value or None, current time in nanoseconds).
        """
        pass

    @abstractmethod
    async def set_if_not_exists_with_ttl(self, key: str, value: int, ttl_nano: int) -> bool:
        """Set the value only if the key is absent, with an expiry.

        Args:
            key: The logical bucket key.
            value: The value to store.
            ttl_nano: Expiry in nanoseconds.

        Returns:
            True if the value was set, False if the key already existed.
        """
        pass

    @abstractmethod
    async def compare_and_set_with_ttl(
        self, key: str, old_value: int, new_value: int, ttl_nano: int
    ) -> bool:
        """Atomically replace old_value with new_value and reset the expiry.

        Args:
            key: The logical bucket key.
            old_value: The value the caller expects to be stored.
            new_value: The value to store if old_value matches.
            ttl_nano: Expiry in nanoseconds applied on success.

        Returns:
            True if swapped. False if the key is absent or holds another value;
            neither case is an error and nothing is mutated.
        """
        pass

    async def close(self) -> None:
        """Release connections held by the store."""
        pass
