"""Tests for FileStorageAdapter: atomic writes, backup, retry and recovery."""

import json
import os
from unittest.mock import patch

import pytest

from todokeep.adapters import FileStorageAdapter
from todokeep.models.exceptions import StorageError


def _read(path):
    return json.loads(path.read_text(encoding="utf-8"))


class TestLoad:
    def test_missing_file_is_empty_store(self, file_adapter, store_path):
        assert file_adapter.load() == []
        assert not store_path.exists()

    def test_round_trip(self, file_adapter, store_path):
        file_adapter.save([{"id": "a", "content": "Buy milk"}])

        assert _read(store_path) == {
            "version": "v1",
            "records": [{"id": "a", "content": "Buy milk"}],
        }
        assert FileStorageAdapter(store_path).load() == [{"id": "a", "content": "Buy milk"}]

    def test_corrupt_primary_falls_back_to_backup(self, file_adapter, store_path):
        file_adapter.save([{"id": "old"}])
        file_adapter.save([{"id": "new"}])
        store_path.write_text("{not json", encoding="utf-8")

        records = FileStorageAdapter(store_path).load()

        assert records == [{"id": "old"}]

    def test_unknown_version_falls_back_to_backup(self, file_adapter, store_path):
        file_adapter.save([{"id": "old"}])
        file_adapter.save([{"id": "new"}])
        store_path.write_text(json.dumps({"version": "v42", "records": []}), encoding="utf-8")

        assert FileStorageAdapter(store_path).load() == [{"id": "old"}]

    def test_corrupt_primary_without_backup_raises(self, store_path):
        store_path.write_text("garbage", encoding="utf-8")

        with pytest.raises(StorageError) as exc_info:
            FileStorageAdapter(store_path).load()

        assert exc_info.value.cause is not None

    def test_primary_and_backup_corrupt_raises(self, store_path):
        store_path.write_text("garbage", encoding="utf-8")
        store_path.with_name("todos.json.bak").write_text("also garbage", encoding="utf-8")

        with pytest.raises(StorageError):
            FileStorageAdapter(store_path).load()

    def test_missing_primary_restores_from_backup(self, file_adapter, store_path):
        file_adapter.save([{"id": "old"}])
        file_adapter.save([{"id": "new"}])
        store_path.unlink()

        assert FileStorageAdapter(store_path).load() == [{"id": "old"}]

    def test_stale_tmp_without_primary_is_promoted(self, store_path):
        tmp = store_path.with_name("todos.json.tmp")
        tmp.write_text(json.dumps({"version": "v1", "records": [{"id": "a"}]}), encoding="utf-8")

        records = FileStorageAdapter(store_path).load()

        assert records == [{"id": "a"}]
        assert store_path.exists()
        assert not tmp.exists()

    def test_stale_tmp_next_to_primary_is_discarded(self, file_adapter, store_path):
        file_adapter.save([{"id": "kept"}])
        tmp = store_path.with_name("todos.json.tmp")
        tmp.write_text(json.dumps({"version": "v1", "records": [{"id": "half"}]}), encoding="utf-8")

        records = FileStorageAdapter(store_path).load()

        assert records == [{"id": "kept"}]
        assert not tmp.exists()

    def test_legacy_file_is_migrated_on_load(self, store_path):
        store_path.write_text(
            json.dumps({"version": 1, "todos": [{"id": "a", "status": "in_progress"}]}),
            encoding="utf-8",
        )

        assert FileStorageAdapter(store_path).load() == [{"id": "a", "status": "active"}]


class TestSave:
    def test_backup_holds_previous_good_file(self, file_adapter, store_path):
        file_adapter.load()
        file_adapter.save([{"id": "one"}])
        file_adapter.save([{"id": "two"}])

        backup = store_path.with_name("todos.json.bak")
        assert _read(backup)["records"] == [{"id": "one"}]
        assert _read(store_path)["records"] == [{"id": "two"}]

    def test_no_backup_when_disabled(self, store_path):
        adapter = FileStorageAdapter(store_path, keep_backup=False)
        adapter.save([{"id": "one"}])
        adapter.save([{"id": "two"}])

        assert not store_path.with_name("todos.json.bak").exists()

    def test_creates_parent_directories(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "todos.json"
        FileStorageAdapter(path).save([])
        assert path.exists()

    def test_transient_failure_is_retried(self, store_path):
        sleeps = []
        adapter = FileStorageAdapter(store_path, write_attempts=3, sleep=sleeps.append)
        real_replace = os.replace
        calls = {"n": 0}

        def flaky_replace(src, dst):
            calls["n"] += 1
            if calls["n"] == 1:
                raise PermissionError("file is locked")
            real_replace(src, dst)

        with patch("todokeep.adapters.file_adapter.os.replace", side_effect=flaky_replace):
            adapter.save([{"id": "a"}])

        assert _read(store_path)["records"] == [{"id": "a"}]
        assert len(sleeps) == 1

    def test_persistent_failure_raises_storage_error(self, store_path):
        sleeps = []
        adapter = FileStorageAdapter(
            store_path, write_attempts=3, retry_delay_ms=10, sleep=sleeps.append
        )

        with patch(
            "todokeep.adapters.file_adapter.os.replace", side_effect=OSError("disk full")
        ):
            with pytest.raises(StorageError) as exc_info:
                adapter.save([{"id": "a"}])

        assert isinstance(exc_info.value.cause, OSError)
        assert sleeps == [0.01, 0.01]
        assert not store_path.with_name("todos.json.tmp").exists()

    def test_failed_write_leaves_previous_file_intact(self, file_adapter, store_path):
        file_adapter.save([{"id": "good"}])

        with patch(
            "todokeep.adapters.file_adapter.os.replace", side_effect=OSError("disk full")
        ):
            with pytest.raises(StorageError):
                file_adapter.save([{"id": "bad"}])

        assert _read(store_path)["records"] == [{"id": "good"}]

    def test_write_attempts_must_be_positive(self, store_path):
        with pytest.raises(ValueError):
            FileStorageAdapter(store_path, write_attempts=0)
