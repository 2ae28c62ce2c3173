"""Ledger storage adapters.

This package keeps persistence behind a small interface so the limiter can
run on an in-memory store in tests and a durable JSON file in deployments.
"""

from abuse_limiter.adapters.storage.base import AbstractLedgerStorage
from abuse_limiter.adapters.storage.factory import create_ledger_storage
from abuse_limiter.adapters.storage.in_memory import InMemoryLedgerStorage
from abuse_limiter.adapters.storage.json_file import JsonFileLedgerStorage

__all__ = [
    "AbstractLedgerStorage",
    "InMemoryLedgerStorage",
    "JsonFileLedgerStorage",
    "create_ledger_storage",
]
