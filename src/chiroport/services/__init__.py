"""Service layer: rate limiting, provider clients and request screening."""

from .rate_limit import RateLimiter, get_rate_limiter
from .waitwhile import WaitwhileClient, get_waitwhile_client

__all__ = [
    "RateLimiter",
    "WaitwhileClient",
    "get_rate_limiter",
    "get_waitwhile_client",
]
