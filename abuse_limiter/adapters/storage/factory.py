"""Factory for creating ledger storage instances."""

from abuse_limiter.adapters.storage.base import AbstractLedgerStorage
from abuse_limiter.adapters.storage.in_memory import InMemoryLedgerStorage
from abuse_limiter.adapters.storage.json_file import JsonFileLedgerStorage
from abuse_limiter.core.config import LimiterSettings, settings
from abuse_limiter.core.errors import ValidationAppError


def create_ledger_storage(limiter_settings: LimiterSettings | None = None) -> AbstractLedgerStorage:
    """Instantiate the ledger storage selected by configuration.

    Args:
        limiter_settings: Optional limiter settings; defaults to global settings.

    Returns:
        AbstractLedgerStorage: Configured storage backend.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    cfg = limiter_settings or settings.limiter
    backend = cfg.storage_backend.lower()

    if backend == "memory":
        return InMemoryLedgerStorage(storage_key=cfg.storage_key)

    if backend == "file":
        return JsonFileLedgerStorage(cfg.storage_dir, storage_key=cfg.storage_key)

    raise ValidationAppError(
        code="limiter_unknown_storage_backend",
        message=(
            f"Unknown ledger storage backend: '{backend}'. Supported backends: memory, file"
        ),
        details={"backend": backend},
    )
