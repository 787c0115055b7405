"""Tests for the locking file store."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from filelock import FileLock

from tasktrack.core.errors import CorruptStorage, StorageError
from tasktrack.storage.locks import LockTimeout
from tasktrack.storage.store import LockingFileStore

_BUY_MILK = {"id": 1, "title": "Buy milk", "completed": False}


def _assert_unlocked(store: LockingFileStore) -> None:
    """Fail if anyone still holds the store's lock."""
    probe = FileLock(store.lock_path, timeout=0)
    probe.acquire()
    probe.release()


class TestReadShared:
    def test_absent_file_is_created_and_empty(self, store: LockingFileStore) -> None:
        assert not store.path.exists()
        assert store.read_shared() == []
        assert store.path.exists()
        _assert_unlocked(store)

    def test_reads_existing_content(self, store: LockingFileStore, write_storage) -> None:
        write_storage([_BUY_MILK])
        assert store.read_shared() == [_BUY_MILK]

    def test_corrupt_content_raises_and_unlocks(
        self, store: LockingFileStore, write_storage
    ) -> None:
        write_storage('"just a string"')
        with pytest.raises(CorruptStorage) as exc_info:
            store.read_shared()
        assert exc_info.value.path == store.path
        assert str(store.path) in str(exc_info.value)
        _assert_unlocked(store)

    def test_missing_directory_is_open_error(self, tmp_path: Path) -> None:
        store = LockingFileStore(tmp_path / "nope" / "tasks.json")
        with pytest.raises(StorageError) as exc_info:
            store.read_shared()
        assert exc_info.value.kind in (StorageError.KIND_LOCK, StorageError.KIND_OPEN)

    def test_waits_for_writer_with_timeout(self, storage_path: Path) -> None:
        store = LockingFileStore(storage_path, lock_timeout=0.1)
        _tasks, handle = store.read_exclusive_for_update()
        try:
            with pytest.raises(LockTimeout):
                store.read_shared()
        finally:
            store.release(handle)


class TestReadExclusiveForUpdate:
    def test_returns_tasks_and_holds_lock(self, store: LockingFileStore, write_storage) -> None:
        write_storage([_BUY_MILK])
        tasks, handle = store.read_exclusive_for_update()
        try:
            assert tasks == [_BUY_MILK]
            probe = FileLock(store.lock_path, timeout=0)
            with pytest.raises(Exception):  # noqa: B017
                probe.acquire(timeout=0)
        finally:
            store.release(handle)
        _assert_unlocked(store)

    def test_corrupt_content_releases_lock(self, store: LockingFileStore, write_storage) -> None:
        write_storage("{not json")
        with pytest.raises(CorruptStorage):
            store.read_exclusive_for_update()
        _assert_unlocked(store)

    def test_second_writer_times_out(self, storage_path: Path) -> None:
        first = LockingFileStore(storage_path)
        second = LockingFileStore(storage_path, lock_timeout=0.1)
        _tasks, handle = first.read_exclusive_for_update()
        try:
            with pytest.raises(LockTimeout):
                second.read_exclusive_for_update()
        finally:
            first.release(handle)


class TestCommit:
    def test_writes_and_unlocks(self, store: LockingFileStore) -> None:
        tasks, handle = store.read_exclusive_for_update()
        tasks.append(_BUY_MILK)
        store.commit(handle, tasks)

        assert store.read_shared() == [_BUY_MILK]
        assert store.path.read_text(encoding="utf-8").endswith("]\n")
        _assert_unlocked(store)

    def test_no_temp_files_left(self, store: LockingFileStore) -> None:
        tasks, handle = store.read_exclusive_for_update()
        store.commit(handle, [_BUY_MILK])
        names = sorted(p.name for p in store.path.parent.iterdir())
        assert names == ["tasks.json", "tasks.json.lock"]

    def test_replace_failure_keeps_old_content_and_unlocks(
        self, store: LockingFileStore, write_storage, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        write_storage([_BUY_MILK])
        before = store.path.read_bytes()

        tasks, handle = store.read_exclusive_for_update()
        tasks.append({"id": 2, "title": "Walk dog", "completed": False})

        def failing_replace(src: str, dst: object) -> None:
            raise OSError("rename refused")

        monkeypatch.setattr(os, "replace", failing_replace)
        with pytest.raises(StorageError) as exc_info:
            store.commit(handle, tasks)
        monkeypatch.undo()

        assert exc_info.value.kind == StorageError.KIND_REPLACE
        assert store.path.read_bytes() == before
        assert not [p for p in store.path.parent.iterdir() if p.name.startswith(".tmp.")]
        _assert_unlocked(store)

    def test_encode_failure_is_storage_error(self, store: LockingFileStore) -> None:
        _tasks, handle = store.read_exclusive_for_update()
        bad = [{"id": 1, "title": object(), "completed": False}]
        with pytest.raises(StorageError) as exc_info:
            store.commit(handle, bad)  # type: ignore[arg-type]
        assert exc_info.value.kind == StorageError.KIND_ENCODE
        _assert_unlocked(store)


class TestUpdateHandle:
    def test_cannot_finalize_twice(self, store: LockingFileStore) -> None:
        _tasks, handle = store.read_exclusive_for_update()
        store.release(handle)
        with pytest.raises(RuntimeError, match="already"):
            store.commit(handle, [])
        with pytest.raises(RuntimeError, match="already"):
            store.release(handle)

    def test_context_manager_releases_unfinalized_handle(self, store: LockingFileStore) -> None:
        with pytest.raises(KeyError):
            _tasks, handle = store.read_exclusive_for_update()
            with handle:
                raise KeyError("boom")
        assert handle.finalized
        _assert_unlocked(store)

    def test_context_manager_after_commit_is_noop(self, store: LockingFileStore) -> None:
        tasks, handle = store.read_exclusive_for_update()
        with handle:
            store.commit(handle, [_BUY_MILK])
        _assert_unlocked(store)
        assert store.read_shared() == [_BUY_MILK]

    def test_handle_bound_to_its_store(self, storage_path: Path) -> None:
        first = LockingFileStore(storage_path)
        other = LockingFileStore(storage_path)
        _tasks, handle = first.read_exclusive_for_update()
        try:
            with pytest.raises(RuntimeError, match="different store"):
                other.commit(handle, [])
        finally:
            first.release(handle)


class TestInitialize:
    def test_creates_empty_collection_and_directories(self, tmp_path: Path) -> None:
        store = LockingFileStore(tmp_path / "data" / "tasks.json")
        assert store.initialize() is True
        assert store.path.read_bytes() == b"[]\n"

    def test_never_overwrites(self, store: LockingFileStore, write_storage) -> None:
        write_storage([_BUY_MILK])
        assert store.initialize() is False
        assert store.read_shared() == [_BUY_MILK]
