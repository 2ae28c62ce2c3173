"""Client-side abuse rate limiter for the campus marketplace."""

from abuse_limiter.core.policies import RATE_LIMITS, get_policy
from abuse_limiter.schemas.rate_limit import RateLimitConfig, RateLimitEntry, RateLimitResult
from abuse_limiter.services.login_throttle import LoginThrottle
from abuse_limiter.services.rate_limiter import RateLimiter

__all__ = [
    "RATE_LIMITS",
    "LoginThrottle",
    "RateLimitConfig",
    "RateLimitEntry",
    "RateLimitResult",
    "RateLimiter",
    "get_policy",
]
