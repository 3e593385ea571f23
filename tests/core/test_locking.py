"""Tests for the advisory lock helpers."""

import time
from unittest.mock import Mock

import pytest

from musiclib.core.errors import LockError, LockTimeout
from musiclib.core.locking import exclusive_lock, lock_path_for, with_lock


class TestLockPathFor:
    def test_sidecar_name(self, tmp_path):
        assert lock_path_for(tmp_path / "musiclib.dsv") == tmp_path / "musiclib.dsv.lock"


class TestWithLock:
    """Tests for with_lock()."""

    def test_runs_function_and_returns_result(self, tmp_path):
        """Lock acquired: fn runs and its result is returned."""
        result = with_lock(tmp_path / "db.lock", 1, lambda a, b: a + b, 2, b=3)
        assert result == 5

    def test_creates_missing_lock_file_and_directory(self, tmp_path):
        lock_path = tmp_path / "nested" / "dir" / "db.lock"
        with_lock(lock_path, 1, lambda: None)
        assert lock_path.exists()

    def test_second_attempt_times_out_while_first_is_held(self, tmp_path):
        """A contender gives up after its timeout without running fn."""
        lock_path = tmp_path / "db.lock"
        fn = Mock()

        with exclusive_lock(lock_path, 1):
            started = time.monotonic()
            with pytest.raises(LockTimeout) as exc_info:
                with_lock(lock_path, 0.3, fn)
            elapsed = time.monotonic() - started

        fn.assert_not_called()
        assert elapsed >= 0.25
        assert exc_info.value.timeout == 0.3

    def test_zero_timeout_fails_immediately_when_held(self, tmp_path):
        lock_path = tmp_path / "db.lock"
        with exclusive_lock(lock_path, 1):
            with pytest.raises(LockTimeout):
                with_lock(lock_path, 0, lambda: None)

    def test_released_after_success(self, tmp_path):
        lock_path = tmp_path / "db.lock"
        with_lock(lock_path, 1, lambda: None)
        # Would time out if the first call leaked the lock
        assert with_lock(lock_path, 0, lambda: "again") == "again"

    def test_released_when_function_raises(self, tmp_path):
        lock_path = tmp_path / "db.lock"

        def boom():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            with_lock(lock_path, 1, boom)

        assert with_lock(lock_path, 0, lambda: "free") == "free"

    def test_unusable_lock_location_raises_lock_error(self, tmp_path):
        """A lock path under a regular file cannot be created."""
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("x")
        with pytest.raises(LockError):
            with_lock(blocker / "db.lock", 1, lambda: None)
