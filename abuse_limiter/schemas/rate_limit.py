"""Pydantic schemas for rate limit configs and the persisted attempt ledger."""

from __future__ import annotations

import math
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

MS_PER_MINUTE = 60 * 1000


class RateLimitConfig(BaseModel):
    """Per-operation limit supplied by the caller on every check.

    Configs are never persisted; the same key may be checked with a different
    config later and the stored timestamps are re-evaluated against it.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(
        ...,
        ge=1,
        description="Attempts permitted inside the sliding window before blocking.",
    )
    window_ms: int = Field(
        ...,
        ge=1,
        description="Sliding-window length in milliseconds.",
    )
    block_duration_ms: int | None = Field(
        None,
        ge=1,
        description="How long a key stays blocked after exceeding the limit. Defaults to window_ms.",
    )
    progressive_blocking: dict[int, int] | None = Field(
        None,
        description=(
            "Escalation table: attempt-count threshold -> block duration in ms. "
            "The highest threshold not above the escalation count wins."
        ),
    )

    @model_validator(mode="after")
    def check_progressive_blocking(self) -> "RateLimitConfig":
        if not self.progressive_blocking:
            return self
        for threshold, duration_ms in self.progressive_blocking.items():
            if threshold < self.max_attempts + 1:
                raise ValueError(
                    f"progressive_blocking threshold {threshold} must be >= max_attempts + 1 "
                    f"({self.max_attempts + 1})"
                )
            if duration_ms < 1:
                raise ValueError(
                    f"progressive_blocking duration for threshold {threshold} must be >= 1"
                )
        return self

    @property
    def effective_block_duration_ms(self) -> int:
        return self.block_duration_ms or self.window_ms

    def block_duration_for(self, escalation_count: int) -> int:
        """Return the block duration applied to a violation at ``escalation_count``.

        Args:
            escalation_count: Attempt count at violation time, including the
                violating call and earlier violations still in the window.

        Returns:
            Block duration in milliseconds.
        """
        if self.progressive_blocking:
            for threshold in sorted(self.progressive_blocking, reverse=True):
                if escalation_count >= threshold:
                    return self.progressive_blocking[threshold]
        return self.effective_block_duration_ms


class RateLimitEntry(BaseModel):
    """Ledger entry for one operation key.

    ``blocked_until`` is stored as ``blockedUntil`` so ledgers written by the
    marketplace client load with their blocks intact.
    """

    model_config = ConfigDict(populate_by_name=True)

    attempts: list[int] = Field(
        default_factory=list,
        description="Timestamps (ms since epoch) of allowed attempts, oldest first.",
    )
    blocked_until: int | None = Field(
        None,
        alias="blockedUntil",
        description="Block expiry (ms since epoch); blocks all attempts while in the future.",
    )
    violations: list[int] = Field(
        default_factory=list,
        description="Timestamps (ms since epoch) of denied attempts that started a block.",
    )

    def is_blocked(self, now_ms: int) -> bool:
        return self.blocked_until is not None and self.blocked_until > now_ms

    def prune(self, now_ms: int, window_ms: int) -> None:
        """Drop timestamps that fell out of the sliding window."""
        self.attempts = [ts for ts in self.attempts if now_ms - ts < window_ms]
        self.violations = [ts for ts in self.violations if now_ms - ts < window_ms]


Ledger = dict[str, RateLimitEntry]

# Serializer for the whole ledger blob stored under one storage identifier
LEDGER_ADAPTER: TypeAdapter[Ledger] = TypeAdapter(Ledger)


def format_retry_message(retry_after_ms: int) -> str:
    """Build the user-facing denial message with a whole-minute delay."""
    minutes = math.ceil(retry_after_ms / MS_PER_MINUTE)
    return f"Too many attempts. Please try again in {minutes} minute(s)."


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a single ``check_limit`` call.

    Attributes:
        allowed: Whether the guarded operation may proceed.
        retry_after_ms: Milliseconds until the key is unblocked (denials only).
        message: Human-readable denial message to surface to the user.
    """

    allowed: bool
    retry_after_ms: int | None = None
    message: str | None = None

    @property
    def retry_after_seconds(self) -> int | None:
        if self.retry_after_ms is None:
            return None
        return max(0, math.ceil(self.retry_after_ms / 1000))

    @classmethod
    def allow(cls) -> "RateLimitResult":
        return cls(allowed=True)

    @classmethod
    def deny(cls, retry_after_ms: int) -> "RateLimitResult":
        return cls(
            allowed=False,
            retry_after_ms=retry_after_ms,
            message=format_retry_message(retry_after_ms),
        )
