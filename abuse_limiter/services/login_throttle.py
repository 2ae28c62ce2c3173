from __future__ import annotations

from abuse_limiter.core.policies import LOGIN_FAILED
from abuse_limiter.schemas.rate_limit import RateLimitConfig, RateLimitResult
from abuse_limiter.services.rate_limiter import RateLimiter

LOGIN_FAILED_KEY_PREFIX = "login_failed_"


def login_failed_key(email: str) -> str:
    return f"{LOGIN_FAILED_KEY_PREFIX}{email.strip().lower()}"


class LoginThrottle:
    """Per-account failed-login throttling on top of a shared limiter.

    Only failures consume slots: ``check`` is a read-only gate before
    credentials are submitted, ``record_failure`` counts a rejected login and
    ``record_success`` forgets the account's history.
    """

    def __init__(self, limiter: RateLimiter, policy: RateLimitConfig | None = None) -> None:
        self._limiter = limiter
        self._policy = policy or LOGIN_FAILED

    @property
    def policy(self) -> RateLimitConfig:
        return self._policy

    def check(self, email: str) -> RateLimitResult:
        retry_after_ms = self._limiter.retry_after_ms(login_failed_key(email))
        if retry_after_ms is None:
            return RateLimitResult.allow()
        return RateLimitResult.deny(retry_after_ms)

    def record_failure(self, email: str) -> RateLimitResult:
        return self._limiter.check_limit(login_failed_key(email), self._policy)

    def record_success(self, email: str) -> None:
        self._limiter.reset(login_failed_key(email))
