"""Application-level exception types.

This module defines the errors used across the limiter and its storage
adapters. Rate-limit denial is deliberately absent: a denied attempt is a
normal ``RateLimitResult``, not an exception.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and callers."""

    code: str
    message: str
    hint: str
    field: str
    path: str
    storage_key: str
    backend: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for limiter failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when a rate limit config, policy name or setting is invalid."""


class StorageAppError(AppError):
    """Raised by ledger storage adapters when reading or writing fails."""
