"""Owner-only file I/O for the agent record and manifest cache.

The agent record points at a socket that grants access to every loaded key,
so it and its parent directory must never be readable by other users.
"""

import logging
import os
import stat
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

# Owner-only directories (rwx------)
SECURE_DIR_MODE: int = stat.S_IRWXU  # 0o700

# Owner-only files (rw-------)
SECURE_FILE_MODE: int = stat.S_IRUSR | stat.S_IWUSR  # 0o600


def secure_mkdir(path: Path, parents: bool = True, tighten: bool = True) -> None:
    """Create a directory (and missing parents) with mode 0o700.

    By default an existing directory is re-chmodded, which is what we want
    for the key directory and the state directory. Parents that already
    exist are left alone: ~/.config is shared with other programs.

    Args:
        path: Directory path to create.
        parents: If True, create missing parent directories as well.
        tighten: If False, an existing directory keeps its mode (log
            directories such as /tmp or a shared logs dir).

    Raises:
        OSError: If creation or chmod fails.
    """
    if parents:
        for parent in reversed(list(path.parents)):
            if not parent.exists():
                parent.mkdir(mode=SECURE_DIR_MODE)
                # umask may have stripped bits
                os.chmod(parent, SECURE_DIR_MODE)

    if path.exists():
        if tighten:
            os.chmod(path, SECURE_DIR_MODE)
        return

    path.mkdir(mode=SECURE_DIR_MODE)
    os.chmod(path, SECURE_DIR_MODE)


def secure_write_atomic(path: Path, content: str | bytes) -> None:
    """Replace a file's contents, keeping it 0o600 at every point in time.

    Content goes to a uniquely named sibling temp file (mkstemp creates it
    0o600), then os.replace() swaps it in. Readers see either the old file
    or the new one, never a truncated file. Concurrent writers each use
    their own temp file; the last replace wins.

    Args:
        path: Destination file.
        content: Full new content. Empty content yields an empty file.

    Raises:
        OSError: If the temp file cannot be written or renamed.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")

    fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    temp_path = Path(temp_name)
    try:
        try:
            os.chmod(temp_path, SECURE_FILE_MODE)
            os.write(fd, content)
            os.fsync(fd)
        finally:
            os.close(fd)

        os.replace(temp_path, path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def remove_file(path: Path) -> bool:
    """Delete a file, treating "already gone" as success.

    Other failures are logged as warnings, not raised.

    Returns:
        True if the file no longer exists afterwards.
    """
    try:
        path.unlink()
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning("Could not remove %s: %s", path, e)
        return False
    return True


def check_directory_access(path: Path) -> list[str]:
    """List the access problems the current user has with a directory.

    Returns:
        Human-readable problems ("not readable", ...). Empty when the
        directory exists and is readable, writable and traversable.
    """
    if not path.is_dir():
        return ["does not exist"]

    problems = []
    if not os.access(path, os.R_OK):
        problems.append("not readable")
    if not os.access(path, os.W_OK):
        problems.append("not writable")
    if not os.access(path, os.X_OK):
        problems.append("not accessible")
    return problems
