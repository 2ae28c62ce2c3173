"""In-memory ledger storage.

Notes:
- Per-process only: nothing survives a restart.
- Keeps the serialized blob (not live objects) so it behaves like a browser
  key-value store: every load returns fresh copies and corrupt data can be
  injected through ``store``.
"""

from __future__ import annotations

from collections.abc import MutableMapping

from abuse_limiter.adapters.storage.base import (
    DEFAULT_STORAGE_KEY,
    AbstractLedgerStorage,
    decode_ledger,
    encode_ledger,
)
from abuse_limiter.schemas.rate_limit import Ledger


class InMemoryLedgerStorage(AbstractLedgerStorage):
    """Ledger storage backed by a string-valued mapping."""

    def __init__(
        self,
        *,
        storage_key: str = DEFAULT_STORAGE_KEY,
        store: MutableMapping[str, str] | None = None,
    ) -> None:
        """Initialize the storage.

        Args:
            storage_key: Fixed identifier the ledger blob is stored under.
            store: Optional backing mapping shared with the caller.
        """
        self.storage_key = storage_key
        self._store = store if store is not None else {}

    def load(self) -> Ledger:
        return decode_ledger(self._store.get(self.storage_key), storage_key=self.storage_key)

    def save(self, ledger: Ledger) -> None:
        self._store[self.storage_key] = encode_ledger(ledger)

    def clear(self) -> None:
        self._store.pop(self.storage_key, None)
