"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins the environment before settings are imported so no .env file or
on-disk ledger leaks into the tests.
"""

import os
from unittest.mock import Mock

import pytest

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LIMITER_STORAGE_BACKEND", "memory")
os.environ.setdefault("LIMITER_LOGIN_FAILED_MAX_ATTEMPTS", "3")

from abuse_limiter.adapters.storage.in_memory import InMemoryLedgerStorage  # noqa: E402
from abuse_limiter.services.rate_limiter import RateLimiter  # noqa: E402

START_MS = 1_700_000_000_000


@pytest.fixture
def clock() -> Mock:
    """Deterministic millisecond clock; move it with ``clock.return_value += ms``."""
    return Mock(return_value=START_MS)


@pytest.fixture
def store() -> dict[str, str]:
    return {}


@pytest.fixture
def limiter(clock: Mock, store: dict[str, str]) -> RateLimiter:
    return RateLimiter(InMemoryLedgerStorage(store=store), clock=clock)
