"""Tests for the failed-login throttle built on the limiter."""

from unittest.mock import Mock

from abuse_limiter.core.policies import LOGIN_FAILED, MINUTE_MS
from abuse_limiter.services.login_throttle import LoginThrottle, login_failed_key
from abuse_limiter.services.rate_limiter import RateLimiter


def test_key_normalizes_email() -> None:
    assert login_failed_key("  Student@Campus.EDU ") == "login_failed_student@campus.edu"


def test_check_does_not_consume_attempts(limiter: RateLimiter) -> None:
    throttle = LoginThrottle(limiter)

    for _ in range(10):
        assert throttle.check("a@campus.edu").allowed is True

    assert limiter.storage.load() == {}


def test_failures_escalate_and_success_resets(limiter: RateLimiter, clock: Mock) -> None:
    throttle = LoginThrottle(limiter)
    email = "a@campus.edu"

    for _ in range(LOGIN_FAILED.max_attempts):
        assert throttle.record_failure(email).allowed is True

    blocked = throttle.record_failure(email)
    assert blocked.allowed is False
    assert blocked.retry_after_ms == 5 * MINUTE_MS

    clock.return_value += MINUTE_MS
    gate = throttle.check(email)
    assert gate.allowed is False
    assert gate.retry_after_ms == 4 * MINUTE_MS
    assert "4 minute(s)" in gate.message

    clock.return_value += 4 * MINUTE_MS
    assert throttle.check(email).allowed is True
    assert throttle.record_failure(email).retry_after_ms == 10 * MINUTE_MS

    throttle.record_success(email)

    assert throttle.check(email).allowed is True
    assert throttle.record_failure(email).allowed is True


def test_accounts_are_throttled_independently(limiter: RateLimiter) -> None:
    throttle = LoginThrottle(limiter)

    for _ in range(LOGIN_FAILED.max_attempts + 1):
        throttle.record_failure("a@campus.edu")

    assert throttle.check("a@campus.edu").allowed is False
    assert throttle.check("b@campus.edu").allowed is True
