"""In-process per-user rate limiting."""

from .limiter import RateLimitWindow, UserRateLimiter

__all__ = ["RateLimitWindow", "UserRateLimiter"]
