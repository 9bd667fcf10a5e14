"""Advisory single-writer lock around spawn + save.

Without it, two shells opening at the same moment can each see no live
agent, each spawn one, and leave the record pointing at whichever wrote
last while the other agent is orphaned.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sshkm.core.errors import ConfigError
from sshkm.core.secure_io import SECURE_FILE_MODE, secure_mkdir

try:
    import fcntl
except ImportError:  # pragma: no cover - Windows
    fcntl = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)


def lock_path_for(record_path: Path) -> Path:
    return record_path.with_name(f".{record_path.name}.lock")


@contextmanager
def spawn_lock(record_path: Path) -> Iterator[None]:
    """Hold an exclusive flock next to the agent record for the block's duration.

    Blocks until any other holder releases. Where flock is unavailable the
    block runs unlocked with a warning. Errors raised inside the block pass
    through untouched.

    Raises:
        ConfigError: If the lock file cannot be created or locked.
    """
    path = lock_path_for(record_path)
    try:
        secure_mkdir(path.parent)
    except OSError as e:
        raise ConfigError(f"Cannot lock agent record {record_path}: {e}") from e

    if fcntl is None:
        logger.warning("fcntl unavailable; agent spawn is not serialized across processes")
        yield
        return

    try:
        fh = path.open("a+", encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot lock agent record {record_path}: {e}") from e

    with fh:
        try:
            path.chmod(SECURE_FILE_MODE)
            logger.debug("Waiting for spawn lock %s", path)
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
        except OSError as e:
            raise ConfigError(f"Cannot lock agent record {record_path}: {e}") from e
        try:
            logger.debug("Spawn lock acquired")
            yield
        finally:
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
