"""Rate limiting middleware exposing GCRA decisions as HTTP headers.

Rate limits are applied per API key if available, otherwise per client IP.
Whether requests proceed when the store is unavailable is decided here,
not by the limiter.
"""

import hashlib
from typing import Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from gcra_limiter.core.config import settings
from gcra_limiter.core.logging import get_log_context, get_logger
from gcra_limiter.exceptions import StoreUpdateFailedError
from gcra_limiter.limiter import RateLimiter

logger = get_logger(__name__)

# Errors meaning "unable to determine the rate limit"
STORE_EXCEPTIONS = (RedisError, StoreUpdateFailedError)

MAX_API_KEY_LENGTH = 512


class GCRARateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce GCRA rate limits on requests."""

    def __init__(
        self,
        app,
        limiter: RateLimiter,
        quantity: int = 1,
        fail_closed: Optional[bool] = None,
    ):
        super().__init__(app)
        self.limiter = limiter
        self.quantity = quantity
        self.fail_closed = (
            fail_closed if fail_closed is not None else settings.rate_limit_fail_closed
        )

    def _get_client_key(self, request: Request) -> str:
        """Get rate limit key for the request.

        API keys and IP addresses are hashed with SHA-256 so raw values never
        reach the store.
        """
        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            api_key = auth[7:].strip()[:MAX_API_KEY_LENGTH]
            key_hash = hashlib.sha256(api_key.encode()).hexdigest()[:32]
            return f"apikey:{key_hash}"

        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()
        else:
            client_ip = request.client.host if request.client else "unknown"
        ip_hash = hashlib.sha256(client_ip.encode()).hexdigest()[:32]
        return f"ip:{ip_hash}"

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        key = self._get_client_key(request)
        request_id = request.headers.get("X-Request-ID")
        try:
            result = await self.limiter.limit(key, self.quantity)
        except STORE_EXCEPTIONS as e:
            if self.fail_closed:
                logger.error(
                    f"Rate limit store unavailable, rejecting request: {e}",
                    extra=get_log_context(rate_limit_key=key, request_id=request_id),
                )
                return JSONResponse(
                    status_code=503,
                    content={
                        "error": "rate_limit_unavailable",
                        "message": "Unable to determine rate limit. Please try again later.",
                    },
                )
            logger.warning(
                f"Rate limit store unavailable, allowing request: {e}",
                extra=get_log_context(rate_limit_key=key, request_id=request_id),
            )
            return await call_next(request)

        headers = result.to_headers()
        if result.limited:
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": "Rate limit exceeded. Please try again later.",
                    "retry_after": result.info.retry_after,
                },
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
