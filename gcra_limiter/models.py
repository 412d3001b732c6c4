"""Rate limit decision models."""

import math
from dataclasses import dataclass
from typing import Iterator, Optional


@dataclass(frozen=True)
class RateLimitInfo:
    """Diagnostics of a rate limit decision.

    Attributes:
        limit: Total burst capacity (max_burst + 1)
        remaining: Unit quantities currently available
        reset_after: Seconds until the bucket is fully available again
        retry_after: Seconds until the same request could succeed, or None
            when it was admitted or can never succeed at this quantity
    """
    limit: int
    remaining: int
    reset_after: float
    retry_after: Optional[float] = None


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of RateLimiter.limit().

    Unpacks as ``limited, info = await limiter.limit(key)``.
    """
    limited: bool
    info: RateLimitInfo

    @property
    def allowed(self) -> bool:
        return not self.limited

    def __iter__(self) -> Iterator:
        return iter((self.limited, self.info))

    def to_headers(self) -> dict[str, str]:
        """Render the decision as rate limit response headers.

        Durations are rounded up to whole seconds.
        """
        headers = {
            "RateLimit-Limit": str(self.info.limit),
            "RateLimit-Remaining": str(self.info.remaining),
            "RateLimit-Reset": str(math.ceil(self.info.reset_after)),
        }
        if self.info.retry_after is not None:
            headers["Retry-After"] = str(math.ceil(self.info.retry_after))
        return headers
