"""Rate limiting dependency for FastAPI routes.

This module wires the limiter into the HTTP layer of a call site.

Design goals:
- Minimal coupling: routes depend on a dependency function only.
- Swap-friendly: ledger storage is chosen by settings behind an interface.
- One slot per request: the dependency consumes exactly one attempt.

Keying strategy:
- ``<policy>:<client host>`` by default.
- Routes throttling per account pass a ``key_builder`` (e.g. keyed by email).
"""

from __future__ import annotations

import logging
import math
from typing import Awaitable, Callable

from fastapi import HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool

from abuse_limiter.adapters.storage.factory import create_ledger_storage
from abuse_limiter.core.config import settings
from abuse_limiter.core.logging import hash_for_log
from abuse_limiter.core.policies import get_policy
from abuse_limiter.schemas.rate_limit import RateLimitConfig, RateLimitResult
from abuse_limiter.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

KeyBuilder = Callable[[Request], str]

_limiter: RateLimiter | None = None
_limiter_config: tuple[str, str, str] | None = None


def get_rate_limiter() -> RateLimiter:
    """Return a process-wide limiter instance.

    The instance is cached in-module so the ledger lock is shared by all
    requests. If storage configuration changes (primarily in tests), the
    limiter is rebuilt. In development the ledger is cleared on first build
    so stale blocks from earlier runs do not get in the way.

    Returns:
        RateLimiter: Configured limiter instance.
    """

    global _limiter, _limiter_config

    cfg = settings.limiter
    config = (cfg.storage_backend, cfg.storage_dir, cfg.storage_key)

    if _limiter is None or _limiter_config != config:
        _limiter = RateLimiter(create_ledger_storage(cfg))
        if _limiter_config is None and settings.is_development and cfg.clear_on_startup:
            _limiter.clear_all()
            logger.info("rate_limit.cleared_for_development")
        _limiter_config = config

    return _limiter


def client_host_key(policy_name: str) -> KeyBuilder:
    """Build a key builder that throttles by client address."""

    def _build(request: Request) -> str:
        client_host = request.client.host if request.client else "unknown"
        return f"{policy_name.lower()}:{client_host}"

    return _build


def _rate_limit_headers(result: RateLimitResult, config: RateLimitConfig) -> dict[str, str]:
    return {
        "Retry-After": str(result.retry_after_seconds or 0),
        "X-RateLimit-Limit": str(config.max_attempts),
        "X-RateLimit-Window": str(math.ceil(config.window_ms / 1000)),
    }


def rate_limit_guard(
    policy_name: str,
    *,
    config: RateLimitConfig | None = None,
    key_builder: KeyBuilder | None = None,
) -> Callable[[Request], Awaitable[RateLimitResult]]:
    """Create a FastAPI dependency enforcing a named policy.

    Args:
        policy_name: Name of a policy in ``RATE_LIMITS``; also prefixes default keys.
        config: Optional config overriding the named policy's values.
        key_builder: Optional function deriving the limiter key from the request.

    Returns:
        Async dependency that consumes one attempt and raises HTTP 429 when denied.
    """

    policy = config or get_policy(policy_name)
    build_key = key_builder or client_host_key(policy_name)

    async def enforce_rate_limit(request: Request) -> RateLimitResult:
        """Consume one attempt for the current request.

        Raises:
            HTTPException: 429 Too Many Requests when the key is over its limit.
        """
        key = build_key(request)
        # Ledger storage may hit the disk; keep it off the event loop.
        result = await run_in_threadpool(get_rate_limiter().check_limit, key, policy)
        if result.allowed:
            logger.debug(
                "rate_limit.allowed",
                extra={"policy": policy_name, "key_hash": hash_for_log(key)},
            )
            return result

        logger.warning(
            "rate_limit.http_denied",
            extra={
                "policy": policy_name,
                "key_hash": hash_for_log(key),
                "retry_after_s": result.retry_after_seconds,
                "request_path": request.url.path,
            },
        )

        headers = _rate_limit_headers(result, policy) if settings.limiter.include_headers else None
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=result.message,
            headers=headers,
        )

    return enforce_rate_limit
