"""Tests for building stores and the global rate limiter from settings."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from gcra_limiter.core.config import Settings
from gcra_limiter.factory import (
    close_rate_limiter,
    create_rate_limiter,
    create_store,
    get_rate_limiter,
    reset_rate_limiter,
)
from gcra_limiter.store.memory import InMemoryStore
from gcra_limiter.store.redis import RedisStore


def test_in_memory_store_when_redis_disabled():
    store = create_store(Settings(_env_file=None, redis_enabled=False))

    assert isinstance(store, InMemoryStore)


def test_redis_store_when_enabled():
    config = Settings(
        _env_file=None,
        redis_enabled=True,
        redis_url="redis://cache:6379/1",
        key_prefix="api:",
        reconnect_on_readonly=True,
    )
    with patch("redis.asyncio.from_url") as mock_from_url:
        mock_from_url.return_value = MagicMock()
        store = create_store(config)

    mock_from_url.assert_called_once_with("redis://cache:6379/1")
    assert isinstance(store, RedisStore)
    assert store._key_prefix == "api:"
    assert store._reconnect_on_readonly is True


def test_create_rate_limiter_uses_settings():
    config = Settings(
        _env_file=None,
        rate_limit_period_seconds=2,
        rate_limit_max_burst=3,
        rate_limit_max_attempts=5,
    )

    limiter = create_rate_limiter(InMemoryStore(), config)

    assert limiter.limit_value == 4
    assert limiter.emission_interval == 2_000_000_000
    assert limiter._max_attempts == 5


def test_global_rate_limiter_is_cached():
    first = get_rate_limiter(InMemoryStore())
    second = get_rate_limiter()

    assert first is second

    reset_rate_limiter()
    assert get_rate_limiter(InMemoryStore()) is not first


@pytest.mark.asyncio
async def test_close_rate_limiter_closes_store_and_resets():
    store = InMemoryStore()
    store.close = AsyncMock()
    limiter = get_rate_limiter(store)

    await close_rate_limiter()

    store.close.assert_awaited_once_with()
    assert get_rate_limiter(InMemoryStore()) is not limiter


@pytest.mark.asyncio
async def test_close_rate_limiter_without_instance():
    await close_rate_limiter()
