"""Shared fixtures for rate limiter tests."""

import pytest

from gcra_limiter.factory import reset_rate_limiter

SECOND = 1_000_000_000


class FakeClock:
    """Controllable nanosecond clock for InMemoryStore."""

    def __init__(self, start: int = 1_700_000_000 * SECOND):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += round(seconds * SECOND)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def reset_globals():
    """Reset the global rate limiter before and after each test."""
    reset_rate_limiter()
    yield
    reset_rate_limiter()
