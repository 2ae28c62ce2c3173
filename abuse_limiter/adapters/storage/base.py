"""Ledger storage interfaces.

The limiter depends on this abstraction (not the concrete implementation)
so tests can use an in-memory store and deployments any durable key-value
store, without touching the sliding-window logic.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from pydantic import ValidationError

from abuse_limiter.schemas.rate_limit import LEDGER_ADAPTER, Ledger

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "rate_limit_data"


def encode_ledger(ledger: Ledger) -> str:
    """Serialize the full ledger to a JSON blob."""
    return LEDGER_ADAPTER.dump_json(ledger, by_alias=True, exclude_none=True).decode("utf-8")


def decode_ledger(blob: str | bytes | None, *, storage_key: str) -> Ledger:
    """Parse a stored JSON blob into a ledger.

    Missing and corrupt blobs both decode to an empty ledger: stale or
    hand-edited data must never lock a user out.

    Args:
        blob: Raw stored data, or None when nothing is stored yet.
        storage_key: Identifier the blob was read from (for logging).

    Returns:
        Mapping of operation key to entry.
    """
    if not blob:
        return {}
    try:
        return LEDGER_ADAPTER.validate_json(blob)
    except ValidationError as exc:
        logger.warning(
            "rate_limit.ledger_corrupt",
            extra={
                "storage_key": storage_key,
                "error_count": exc.error_count(),
            },
        )
        return {}


class AbstractLedgerStorage(ABC):
    """Interface for ledger persistence.

    Implementations read and write the whole ledger as one blob; there is no
    per-key persistence.
    """

    storage_key: str = DEFAULT_STORAGE_KEY

    @abstractmethod
    def load(self) -> Ledger:
        """Read the full ledger.

        Returns:
            The stored ledger, or an empty mapping when missing or corrupt.

        Raises:
            StorageAppError: If the underlying store cannot be read.
        """
        raise NotImplementedError

    @abstractmethod
    def save(self, ledger: Ledger) -> None:
        """Replace the stored ledger with ``ledger``.

        Raises:
            StorageAppError: If the underlying store cannot be written.
        """
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        """Remove the stored ledger entirely.

        Raises:
            StorageAppError: If the underlying store cannot be modified.
        """
        raise NotImplementedError
