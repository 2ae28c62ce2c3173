"""Sliding-window abuse limiter with escalating blocks.

Every ``check_limit`` call both evaluates and, when allowed, consumes one
slot, so callers cannot race between "check" and "consume". Call it exactly
once per real attempt.

Notes:
- Blocks expire lazily: ``blocked_until`` is compared with "now" on the next
  check for the key; nothing clears it in the background.
- Storage failures fail open: an unreadable ledger is treated as empty and
  a failed write is logged and dropped. This limiter is advisory and must
  not lock legitimate users out because persistence is unavailable.
- Thread-safe within one process; processes sharing a store are not
  coordinated.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from abuse_limiter.adapters.storage.base import AbstractLedgerStorage
from abuse_limiter.adapters.storage.in_memory import InMemoryLedgerStorage
from abuse_limiter.core.errors import StorageAppError
from abuse_limiter.core.logging import hash_for_log
from abuse_limiter.schemas.rate_limit import (
    Ledger,
    RateLimitConfig,
    RateLimitEntry,
    RateLimitResult,
)

logger = logging.getLogger(__name__)


def wall_clock_ms() -> int:
    """Current UNIX time in milliseconds."""
    return int(time.time() * 1000)


class RateLimiter:
    """Keyed sliding-window limiter over a persisted attempt ledger.

    A single instance serves unrelated operations; keys such as
    ``login_failed_<email>`` and ``signup_attempt`` never affect each other.
    """

    def __init__(
        self,
        storage: AbstractLedgerStorage | None = None,
        *,
        clock: Callable[[], int] = wall_clock_ms,
    ) -> None:
        """Initialize the limiter.

        Args:
            storage: Ledger persistence; defaults to a fresh in-memory store.
            clock: Time source returning UNIX time in milliseconds.
        """
        self._storage = storage if storage is not None else InMemoryLedgerStorage()
        self._clock = clock
        self._lock = threading.RLock()

    @property
    def storage(self) -> AbstractLedgerStorage:
        return self._storage

    def check_limit(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        """Evaluate one attempt for ``key`` and record it when allowed.

        Args:
            key: Operation + subject identifier (e.g. ``login_failed_a@b.edu``).
            config: Limit to apply for this operation type.

        Returns:
            RateLimitResult; denial is a normal result, never an exception.
        """
        with self._lock:
            now = int(self._clock())
            ledger = self._load()
            entry = ledger.get(key)
            if entry is None:
                entry = RateLimitEntry()

            # An active block dominates; read-only short-circuit.
            if entry.is_blocked(now):
                retry_after_ms = entry.blocked_until - now
                logger.info(
                    "rate_limit.blocked",
                    extra={
                        "key_hash": hash_for_log(key),
                        "retry_after_ms": retry_after_ms,
                    },
                )
                return RateLimitResult.deny(retry_after_ms)

            entry.prune(now, config.window_ms)

            if len(entry.attempts) >= config.max_attempts:
                escalation_count = len(entry.attempts) + len(entry.violations) + 1
                block_ms = config.block_duration_for(escalation_count)
                entry.blocked_until = now + block_ms
                entry.violations.append(now)
                ledger[key] = entry
                self._save(ledger)

                result = RateLimitResult.deny(block_ms)
                logger.warning(
                    "rate_limit.exceeded",
                    extra={
                        "key_hash": hash_for_log(key),
                        "max_attempts": config.max_attempts,
                        "window_ms": config.window_ms,
                        "escalation_count": escalation_count,
                        "block_ms": block_ms,
                    },
                )
                return result

            entry.attempts.append(now)
            entry.blocked_until = None
            ledger[key] = entry
            self._save(ledger)
            return RateLimitResult.allow()

    def retry_after_ms(self, key: str) -> int | None:
        """Return the remaining block time for ``key`` without recording anything.

        Returns:
            Milliseconds until the block expires, or None when not blocked.
        """
        with self._lock:
            now = int(self._clock())
            entry = self._load().get(key)
            if entry is None or not entry.is_blocked(now):
                return None
            return entry.blocked_until - now

    def reset(self, key: str) -> None:
        """Forget everything recorded for ``key``; no-op when absent."""
        with self._lock:
            ledger = self._load()
            if key not in ledger:
                return
            del ledger[key]
            self._save(ledger)
            logger.debug("rate_limit.reset", extra={"key_hash": hash_for_log(key)})

    def clear_all(self) -> None:
        """Wipe the entire persisted ledger."""
        with self._lock:
            try:
                self._storage.clear()
            except StorageAppError as exc:
                self._log_storage_error("clear", exc)
                return
            logger.info("rate_limit.cleared", extra={"storage_key": self._storage.storage_key})

    def _load(self) -> Ledger:
        try:
            return self._storage.load()
        except StorageAppError as exc:
            self._log_storage_error("load", exc)
            return {}

    def _save(self, ledger: Ledger) -> None:
        try:
            self._storage.save(ledger)
        except StorageAppError as exc:
            self._log_storage_error("save", exc)

    def _log_storage_error(self, operation: str, exc: StorageAppError) -> None:
        logger.error(
            "rate_limit.storage_error",
            extra={
                "operation": operation,
                "error_code": exc.code,
                "error_message": exc.message,
                "storage_key": self._storage.storage_key,
            },
        )
