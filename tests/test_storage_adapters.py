"""Tests for ledger storage adapters and their factory."""

import json
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from abuse_limiter.adapters.storage import (
    InMemoryLedgerStorage,
    JsonFileLedgerStorage,
    create_ledger_storage,
)
from abuse_limiter.core.config import LimiterSettings
from abuse_limiter.core.errors import StorageAppError, ValidationAppError
from abuse_limiter.schemas.rate_limit import RateLimitConfig, RateLimitEntry
from abuse_limiter.services.rate_limiter import RateLimiter

from tests.conftest import START_MS


class TestInMemoryLedgerStorage:
    def test_load_is_empty_when_nothing_stored(self) -> None:
        assert InMemoryLedgerStorage().load() == {}

    def test_saves_one_blob_under_the_storage_key(self) -> None:
        store: dict[str, str] = {}
        storage = InMemoryLedgerStorage(storage_key="limits", store=store)

        storage.save({"k": RateLimitEntry(attempts=[1, 2])})

        assert list(store) == ["limits"]
        assert json.loads(store["limits"]) == {"k": {"attempts": [1, 2], "violations": []}}

    def test_load_returns_independent_copies(self) -> None:
        storage = InMemoryLedgerStorage()
        storage.save({"k": RateLimitEntry(attempts=[1])})

        ledger = storage.load()
        ledger["k"].attempts.append(2)

        assert storage.load()["k"].attempts == [1]

    def test_entries_without_violations_load(self) -> None:
        store = {"rate_limit_data": '{"k": {"attempts": [5], "blocked_until": 9}}'}

        entry = InMemoryLedgerStorage(store=store).load()["k"]

        assert entry.attempts == [5]
        assert entry.blocked_until == 9
        assert entry.violations == []

    def test_client_format_keeps_active_block(self, clock: Mock) -> None:
        blob = json.dumps({"k": {"attempts": [START_MS], "blockedUntil": START_MS + 60_000}})
        storage = InMemoryLedgerStorage(store={"rate_limit_data": blob})

        assert storage.load()["k"].blocked_until == START_MS + 60_000

        result = RateLimiter(storage, clock=clock).check_limit(
            "k", RateLimitConfig(max_attempts=5, window_ms=60_000)
        )
        assert result.allowed is False
        assert result.retry_after_ms == 60_000

    def test_block_is_written_in_client_format(self) -> None:
        store: dict[str, str] = {}

        InMemoryLedgerStorage(store=store).save({"k": RateLimitEntry(blocked_until=10)})

        assert json.loads(store["rate_limit_data"]) == {
            "k": {"attempts": [], "blockedUntil": 10, "violations": []}
        }

    def test_clear_removes_only_its_key(self) -> None:
        store = {"rate_limit_data": "{}", "other": "keep"}

        InMemoryLedgerStorage(store=store).clear()

        assert store == {"other": "keep"}


class TestJsonFileLedgerStorage:
    def test_missing_file_loads_empty(self, tmp_path: Path) -> None:
        assert JsonFileLedgerStorage(tmp_path / "absent").load() == {}

    def test_round_trip_creates_directory(self, tmp_path: Path) -> None:
        storage = JsonFileLedgerStorage(tmp_path / "nested" / "dir")

        storage.save({"k": RateLimitEntry(attempts=[1], blocked_until=10)})

        assert storage.path == tmp_path / "nested" / "dir" / "rate_limit_data.json"
        assert storage.load()["k"].blocked_until == 10

    def test_save_leaves_no_temp_files(self, tmp_path: Path) -> None:
        storage = JsonFileLedgerStorage(tmp_path)

        storage.save({"a": RateLimitEntry()})
        storage.save({"b": RateLimitEntry()})

        assert [p.name for p in tmp_path.iterdir()] == ["rate_limit_data.json"]
        assert list(storage.load()) == ["b"]

    def test_corrupt_file_loads_empty(self, tmp_path: Path) -> None:
        storage = JsonFileLedgerStorage(tmp_path)
        storage.path.write_text("{oops", encoding="utf-8")

        assert storage.load() == {}

    def test_clear_removes_file_and_tolerates_absence(self, tmp_path: Path) -> None:
        storage = JsonFileLedgerStorage(tmp_path)
        storage.save({})

        storage.clear()
        storage.clear()

        assert not storage.path.exists()

    def test_unreadable_path_raises_storage_error(self, tmp_path: Path) -> None:
        storage = JsonFileLedgerStorage(tmp_path)
        storage.path.mkdir()

        with pytest.raises(StorageAppError) as exc_info:
            storage.load()

        assert exc_info.value.code == "ledger_read_failed"

    def test_write_failure_raises_storage_error(self, tmp_path: Path) -> None:
        storage = JsonFileLedgerStorage(tmp_path)

        with patch("abuse_limiter.adapters.storage.json_file.os.replace", side_effect=OSError("full")):
            with pytest.raises(StorageAppError) as exc_info:
                storage.save({"k": RateLimitEntry()})

        assert exc_info.value.code == "ledger_write_failed"
        assert list(tmp_path.iterdir()) == []

    def test_ledger_survives_limiter_restart(self, tmp_path: Path) -> None:
        clock = Mock(return_value=START_MS)
        config = RateLimitConfig(max_attempts=2, window_ms=60_000, block_duration_ms=60_000)

        first = RateLimiter(JsonFileLedgerStorage(tmp_path), clock=clock)
        first.check_limit("signup_attempt", config)
        first.check_limit("signup_attempt", config)

        second = RateLimiter(JsonFileLedgerStorage(tmp_path), clock=clock)
        result = second.check_limit("signup_attempt", config)

        assert result.allowed is False
        assert result.retry_after_ms == 60_000


class TestCreateLedgerStorage:
    def test_memory_backend(self) -> None:
        storage = create_ledger_storage(
            LimiterSettings(storage_backend="memory", storage_key="limits")
        )

        assert isinstance(storage, InMemoryLedgerStorage)
        assert storage.storage_key == "limits"

    def test_file_backend(self, tmp_path: Path) -> None:
        storage = create_ledger_storage(
            LimiterSettings(storage_backend="FILE", storage_dir=str(tmp_path))
        )

        assert isinstance(storage, JsonFileLedgerStorage)
        assert storage.path == tmp_path / "rate_limit_data.json"

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            create_ledger_storage(LimiterSettings(storage_backend="redis"))

        assert exc_info.value.code == "limiter_unknown_storage_backend"
