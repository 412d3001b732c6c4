"""In-memory store for single-process deployments and tests."""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable

from gcra_limiter.store.base import NANOS_PER_MILLI, RateLimitStore, ttl_nano_to_milli

DEFAULT_SWEEP_INTERVAL = 60 * 1_000_000_000  # nanoseconds


@dataclass
class _StoreEntry:
    """Internal store entry with expiry tracking."""

    value: int
    expires_at: int  # nanoseconds since epoch

    def is_expired(self, now: int) -> bool:
        return now >= self.expires_at


class InMemoryStore(RateLimitStore):
    """Store backed by a dictionary and guarded by an asyncio.Lock.

    The injected clock is the authoritative time source, so all limiters
    sharing one instance agree on "now". Expiries are truncated to
    milliseconds the same way the Redis store sends them.

    Expired buckets of keys that are never used again are removed by
    cleanup_expired(), which also runs on any operation once
    sweep_interval has passed since the previous sweep.

    Note: state is not shared between processes and is lost on restart.
    """

    def __init__(
        self,
        key_prefix: str = "",
        clock: Callable[[], int] = time.time_ns,
        sweep_interval: int = DEFAULT_SWEEP_INTERVAL,
    ) -> None:
        self._key_prefix = key_prefix
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._next_sweep_at = clock() + sweep_interval
        self._data: dict[str, _StoreEntry] = {}
        self._lock = asyncio.Lock()

    def _live_entry(self, full_key: str, now: int) -> _StoreEntry | None:
        if now >= self._next_sweep_at:
            self._sweep(now)
        entry = self._data.get(full_key)
        if entry is None:
            return None
        if entry.is_expired(now):
            del self._data[full_key]
            return None
        return entry

    def _sweep(self, now: int) -> int:
        expired_keys = [key for key, entry in self._data.items() if entry.is_expired(now)]
        for key in expired_keys:
            del self._data[key]
        self._next_sweep_at = now + self._sweep_interval
        return len(expired_keys)

    def _expires_at(self, now: int, ttl_nano: int) -> int:
        return now + ttl_nano_to_milli(ttl_nano) * NANOS_PER_MILLI

    async def get_with_time(self, key: str) -> tuple[int | None, int]:
        async with self._lock:
            now = self._clock()
            entry = self._live_entry(self._key_prefix + key, now)
            return (entry.value if entry else None), now

    async def set_if_not_exists_with_ttl(self, key: str, value: int, ttl_nano: int) -> bool:
        full_key = self._key_prefix + key
        async with self._lock:
            now = self._clock()
            if self._live_entry(full_key, now) is not None:
                return False
            self._data[full_key] = _StoreEntry(value, self._expires_at(now, ttl_nano))
            return True

    async def compare_and_set_with_ttl(
        self, key: str, old_value: int, new_value: int, ttl_nano: int
    ) -> bool:
        full_key = self._key_prefix + key
        async with self._lock:
            now = self._clock()
            entry = self._live_entry(full_key, now)
            if entry is None or entry.value != old_value:
                return False
            self._data[full_key] = _StoreEntry(new_value, self._expires_at(now, ttl_nano))
            return True

    async def ttl(self, key: str) -> int | None:
        """Remaining expiry of the key in nanoseconds, or None if absent."""
        async with self._lock:
            now = self._clock()
            entry = self._live_entry(self._key_prefix + key, now)
            return entry.expires_at - now if entry else None

    async def cleanup_expired(self) -> int:
        """Remove all expired buckets.

        Returns:
            Number of buckets removed.
        """
        async with self._lock:
            return self._sweep(self._clock())

    def __len__(self) -> int:
        return len(self._data)

    async def clear(self) -> None:
        """Remove all buckets."""
        async with self._lock:
            self._data.clear()
