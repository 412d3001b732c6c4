"""Custom exceptions for the rate limiter.

Store and transport failures are not wrapped: they surface as the redis-py
exceptions raised by the client.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gcra_limiter.models import RateLimitInfo


class RateLimiterError(Exception):
    """Base class for rate limiter exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500

    def __init__(self, message: str = "Rate limiter error"):
        self.message = message
        super().__init__(message)


class InvalidRateLimitError(RateLimiterError, ValueError):
    """Raised for invalid limiter parameters or request quantities.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400


class StoreUpdateFailedError(RateLimiterError):
    """Raised when the bucket could not be updated within the attempt budget.

    Every attempt lost its compare-and-swap to a concurrent writer.
    Maps to HTTP 503 Service Unavailable.
    """
    status_code = 503

    def __init__(self, key: str, attempts: int):
        self.key = key
        self.attempts = attempts
        super().__init__(
            f"Failed to store updated rate limit data for key '{key}' "
            f"after {attempts} attempts"
        )


class RateLimitExceededError(RateLimiterError):
    """Raised by RateLimiter.enforce() when a request is limited.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(self, key: str, info: "RateLimitInfo", detail: str | None = None):
        self.key = key
        self.info = info
        message = detail or f"Rate limit exceeded for key '{key}'."
        if info.retry_after is not None:
            message += f" Retry after {info.retry_after:.3f}s."
        super().__init__(message)
