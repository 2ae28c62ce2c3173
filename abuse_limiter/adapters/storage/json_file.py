"""Durable JSON-file ledger storage.

The ledger lives in ``<directory>/<storage_key>.json``. Writes go to a
temporary file in the same directory and are renamed over the target, so a
crash mid-write leaves the previous ledger intact.

Sharing one file between processes is not coordinated; each process must
use its own directory.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from abuse_limiter.adapters.storage.base import (
    DEFAULT_STORAGE_KEY,
    AbstractLedgerStorage,
    decode_ledger,
    encode_ledger,
)
from abuse_limiter.core.errors import StorageAppError
from abuse_limiter.schemas.rate_limit import Ledger


class JsonFileLedgerStorage(AbstractLedgerStorage):
    """Ledger storage persisted as a JSON document on disk."""

    def __init__(self, directory: str | Path, *, storage_key: str = DEFAULT_STORAGE_KEY) -> None:
        self.storage_key = storage_key
        self._directory = Path(directory)

    @property
    def path(self) -> Path:
        return self._directory / f"{self.storage_key}.json"

    def load(self) -> Ledger:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise StorageAppError(
                code="ledger_read_failed",
                message=f"Could not read rate limit ledger: {exc}",
                details={"path": str(self.path), "storage_key": self.storage_key},
            ) from exc
        return decode_ledger(raw, storage_key=self.storage_key)

    def save(self, ledger: Ledger) -> None:
        blob = encode_ledger(ledger)
        tmp_name: str | None = None
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._directory,
                prefix=f".{self.storage_key}.",
                suffix=".tmp",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                handle.write(blob)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise StorageAppError(
                code="ledger_write_failed",
                message=f"Could not write rate limit ledger: {exc}",
                details={"path": str(self.path), "storage_key": self.storage_key},
            ) from exc

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageAppError(
                code="ledger_clear_failed",
                message=f"Could not remove rate limit ledger: {exc}",
                details={"path": str(self.path), "storage_key": self.storage_key},
            ) from exc
