"""Tests for the advisory spawn lock."""

import stat
import subprocess
import sys
import textwrap
from pathlib import Path
from unittest.mock import patch

import pytest

from sshkm.agent.lock import lock_path_for, spawn_lock
from sshkm.core.errors import ConfigError


def test_lock_path_is_hidden_sibling(tmp_path: Path) -> None:
    assert lock_path_for(tmp_path / "agent.env") == tmp_path / ".agent.env.lock"


@pytest.mark.unix_only
class TestSpawnLock:
    def test_creates_private_lock_file(self, tmp_path: Path) -> None:
        record = tmp_path / "state" / "agent.env"
        with spawn_lock(record):
            lock = lock_path_for(record)
            assert lock.exists()
            assert stat.S_IMODE(lock.stat().st_mode) == 0o600
        assert stat.S_IMODE(record.parent.stat().st_mode) == 0o700

    def test_reentrant_across_sequential_blocks(self, tmp_path: Path) -> None:
        record = tmp_path / "agent.env"
        with spawn_lock(record):
            pass
        with spawn_lock(record):
            pass

    def test_excludes_other_process(self, tmp_path: Path) -> None:
        """While held, another process cannot take the flock."""
        record = tmp_path / "agent.env"
        try_lock = textwrap.dedent(f"""
            import fcntl, sys
            with open({str(lock_path_for(record))!r}, "a+") as fh:
                try:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                except BlockingIOError:
                    sys.exit(7)
            sys.exit(0)
        """)

        with spawn_lock(record):
            held = subprocess.run([sys.executable, "-c", try_lock], check=False)
        released = subprocess.run([sys.executable, "-c", try_lock], check=False)

        assert held.returncode == 7
        assert released.returncode == 0


def test_without_fcntl_runs_unlocked(tmp_path: Path) -> None:
    with patch("sshkm.agent.lock.fcntl", None):
        with spawn_lock(tmp_path / "agent.env"):
            ran = True
    assert ran


class TestLockErrors:
    def test_unusable_lock_dir_is_config_error(self, tmp_path: Path) -> None:
        with patch("sshkm.agent.lock.secure_mkdir", side_effect=PermissionError("denied")):
            with pytest.raises(ConfigError, match="Cannot lock agent record"):
                with spawn_lock(tmp_path / "agent.env"):
                    pass

    def test_errors_inside_block_pass_through(self, tmp_path: Path) -> None:
        with pytest.raises(PermissionError, match="tool"):
            with spawn_lock(tmp_path / "agent.env"):
                raise PermissionError("tool")
