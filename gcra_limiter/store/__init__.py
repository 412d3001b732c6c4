"""Stores persisting the theoretical arrival time of each bucket."""

from .base import RateLimitStore, ttl_nano_to_milli
from .memory import InMemoryStore
from .redis import RedisStore
from .redis_lua import CAS_SCRIPT, CAS_SHA, verify_cas_script

__all__ = [
    "RateLimitStore",
    "ttl_nano_to_milli",
    "InMemoryStore",
    "RedisStore",
    "CAS_SCRIPT",
    "CAS_SHA",
    "verify_cas_script",
]
