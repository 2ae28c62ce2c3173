"""Named rate limit policies for the marketplace's sensitive operations.

Each call site checks its operation against one of these before performing
it. Failed login is the only policy with progressive blocking: repeated
failures escalate the lockout instead of applying a flat block.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from abuse_limiter.core.config import settings
from abuse_limiter.core.errors import ValidationAppError
from abuse_limiter.schemas.rate_limit import RateLimitConfig

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS

# Lockout applied on the 1st, 2nd, 3rd and 4th+ violation past max_attempts
LOGIN_FAILED_ESCALATION_MS = (
    5 * MINUTE_MS,
    10 * MINUTE_MS,
    15 * MINUTE_MS,
    30 * MINUTE_MS,
)

ORDER_CREATION = RateLimitConfig(
    max_attempts=5,
    window_ms=HOUR_MS,
    block_duration_ms=30 * MINUTE_MS,
)

PASSWORD_RESET = RateLimitConfig(
    max_attempts=3,
    window_ms=HOUR_MS,
    block_duration_ms=HOUR_MS,
)

LISTING_CREATION = RateLimitConfig(
    max_attempts=10,
    window_ms=HOUR_MS,
    block_duration_ms=15 * MINUTE_MS,
)

SIGNUP = RateLimitConfig(
    max_attempts=10,
    window_ms=30 * MINUTE_MS,
    block_duration_ms=30 * MINUTE_MS,
)


def build_login_failed_policy(max_attempts: int) -> RateLimitConfig:
    """Build the failed-login policy for a given allowance.

    Thresholds start right after the allowance, so with ``max_attempts=3``
    the 4th failure blocks for 5 minutes, the 5th for 10, the 6th for 15
    and the 7th onwards for 30.

    Args:
        max_attempts: Failed logins allowed per window before blocking.

    Returns:
        RateLimitConfig with a one-hour window and progressive blocking.
    """
    return RateLimitConfig(
        max_attempts=max_attempts,
        window_ms=HOUR_MS,
        progressive_blocking={
            max_attempts + offset: duration_ms
            for offset, duration_ms in enumerate(LOGIN_FAILED_ESCALATION_MS, start=1)
        },
    )


LOGIN_FAILED = build_login_failed_policy(settings.limiter.login_failed_max_attempts)

RATE_LIMITS: Mapping[str, RateLimitConfig] = MappingProxyType(
    {
        "ORDER_CREATION": ORDER_CREATION,
        "PASSWORD_RESET": PASSWORD_RESET,
        "LISTING_CREATION": LISTING_CREATION,
        "SIGNUP": SIGNUP,
        "LOGIN_FAILED": LOGIN_FAILED,
    }
)


def get_policy(name: str) -> RateLimitConfig:
    """Look up a named policy (case-insensitive).

    Raises:
        ValidationAppError: If no policy has that name.
    """
    try:
        return RATE_LIMITS[name.upper()]
    except KeyError:
        raise ValidationAppError(
            code="limiter_unknown_policy",
            message=f"Unknown rate limit policy: '{name}'. Known policies: {', '.join(RATE_LIMITS)}",
            details={"field": "policy"},
        ) from None
