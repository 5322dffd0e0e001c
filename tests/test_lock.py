"""Tests for tiller_sync.sync.lock: single-flight sync guard."""

import os

import pytest

from tiller_sync.errors import SyncInProgressError
from tiller_sync.sync.lock import SyncLock, is_locked, read_holder


class TestSyncLock:
    def test_acquire_records_pid(self, tmp_path):
        path = tmp_path / "tiller.sqlite.lock"
        with SyncLock(path) as lock:
            assert lock.held
            assert read_holder(path) == os.getpid()
            assert is_locked(path)
        assert not lock.held
        assert not is_locked(path)
        assert read_holder(path) is None

    def test_second_holder_refused(self, tmp_path):
        path = tmp_path / "tiller.sqlite.lock"
        with SyncLock(path):
            with pytest.raises(SyncInProgressError, match=f"PID {os.getpid()}"):
                SyncLock(path).acquire()

    def test_reacquire_after_release(self, tmp_path):
        path = tmp_path / "tiller.sqlite.lock"
        first = SyncLock(path)
        first.acquire()
        first.release()
        first.release()

        with SyncLock(path) as second:
            assert second.held

    def test_released_on_error(self, tmp_path):
        path = tmp_path / "tiller.sqlite.lock"
        with pytest.raises(RuntimeError):
            with SyncLock(path):
                raise RuntimeError("sync failed")
        assert not is_locked(path)

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "new-home" / "tiller.sqlite.lock"
        with SyncLock(path):
            assert path.exists()

    def test_missing_file_is_unlocked(self, tmp_path):
        assert is_locked(tmp_path / "none.lock") is False
        assert read_holder(tmp_path / "none.lock") is None
