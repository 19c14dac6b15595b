"""
Tests for the process lock and atomic writes.
"""

import os
from pathlib import Path

import pytest

from sbprovision.core.errors import AlreadyRunning, LockUnavailable
from sbprovision.core.persistence.atomic import atomic_write_bytes, atomic_write_text
from sbprovision.core.services.lock import process_lock


class TestProcessLock:
    def test_acquire_and_release(self, tmp_path: Path):
        path = tmp_path / "run/sbprovision.lock"
        with process_lock(path):
            assert path.read_text().strip() == str(os.getpid())
        with process_lock(path):
            pass

    def test_second_holder_refused(self, tmp_path: Path):
        path = tmp_path / "sbprovision.lock"
        with process_lock(path):
            with pytest.raises(AlreadyRunning):
                with process_lock(path):
                    pass

    def test_released_after_exception(self, tmp_path: Path):
        path = tmp_path / "sbprovision.lock"
        with pytest.raises(RuntimeError):
            with process_lock(path):
                raise RuntimeError("stage blew up")
        with process_lock(path):
            pass

    def test_parent_is_regular_file(self, tmp_path: Path):
        blocker = tmp_path / "run"
        blocker.write_text("not a directory")
        with pytest.raises(LockUnavailable, match="Cannot open lock file"):
            with process_lock(blocker / "sbprovision.lock"):
                pass

    def test_lock_path_is_directory(self, tmp_path: Path):
        path = tmp_path / "sbprovision.lock"
        path.mkdir()
        with pytest.raises(LockUnavailable):
            with process_lock(path):
                pass


class TestAtomicWrite:
    def test_text(self, tmp_path: Path):
        path = tmp_path / "refind.conf"
        atomic_write_text(path, "timeout 5\n")
        assert path.read_text() == "timeout 5\n"
        assert [p.name for p in tmp_path.iterdir()] == ["refind.conf"]

    def test_keeps_existing_mode(self, tmp_path: Path):
        path = tmp_path / "x"
        path.write_bytes(b"old")
        path.chmod(0o600)
        atomic_write_bytes(path, b"new")
        assert path.read_bytes() == b"new"
        assert path.stat().st_mode & 0o777 == 0o600

    def test_explicit_mode(self, tmp_path: Path):
        path = tmp_path / "x.cer"
        atomic_write_bytes(path, b"der", mode=0o644)
        assert path.stat().st_mode & 0o777 == 0o644
