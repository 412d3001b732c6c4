from gcra_limiter.middleware.rate_limit import GCRARateLimitMiddleware

__all__ = ["GCRARateLimitMiddleware"]
