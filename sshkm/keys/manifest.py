"""Key manifest: which files in the key directory are loadable private keys.

A file qualifies when it is a regular file directly inside the directory,
its name does not end in the public suffix, and `<name><suffix>` exists
next to it. The qualifying basenames, in directory enumeration order, are
cached one per line so later runs (and the reconciler) can compare counts
without rescanning.

An empty cache file means "scanned, found nothing"; a missing cache file
means "never scanned".
"""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from sshkm.config.load_utils import read_list_file
from sshkm.core.errors import ConfigError, LoadError
from sshkm.core.secure_io import check_directory_access, secure_mkdir, secure_write_atomic

logger = logging.getLogger(__name__)


class ManifestStatus(Enum):
    EMPTY = "empty"
    NON_EMPTY = "non_empty"


@dataclass(frozen=True)
class ManifestResult:
    """A scanned (or imported) manifest and where it was cached."""

    entries: tuple[str, ...]
    cache_path: Path

    @property
    def status(self) -> ManifestStatus:
        return ManifestStatus.NON_EMPTY if self.entries else ManifestStatus.EMPTY

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def __len__(self) -> int:
        return len(self.entries)


class KeyManifestScanner:
    """Scans a key directory and owns the manifest cache file."""

    def __init__(self, key_dir: Path, cache_path: Path, public_suffix: str = ".pub") -> None:
        self.key_dir = key_dir
        self.cache_path = cache_path
        self.public_suffix = public_suffix

    def validate_directory(self) -> None:
        """Make sure the key directory is usable, creating it (0o700) if missing.

        Raises:
            ConfigError: If it cannot be created, or exists with insufficient access.
        """
        if not self.key_dir.exists():
            logger.warning("Key directory %s does not exist; creating it", self.key_dir)
            try:
                secure_mkdir(self.key_dir)
            except OSError as e:
                raise ConfigError(f"Cannot create key directory {self.key_dir}: {e}") from e
            return

        problems = check_directory_access(self.key_dir)
        if problems:
            raise ConfigError(f"Key directory {self.key_dir} is {', '.join(problems)}")
        logger.debug("Key directory %s validated", self.key_dir)

    def find_keys(self) -> list[str]:
        """Return qualifying basenames without touching the cache."""
        try:
            entries = list(os.scandir(self.key_dir))
        except OSError as e:
            raise ConfigError(f"Cannot read key directory {self.key_dir}: {e}") from e

        found = []
        for entry in entries:
            name = entry.name
            if name.endswith(self.public_suffix):
                continue
            try:
                if not entry.is_file():
                    continue
            except OSError:
                continue
            if (self.key_dir / f"{name}{self.public_suffix}").is_file():
                logger.debug("Found key pair: %s (+%s)", name, self.public_suffix)
                found.append(name)
            else:
                logger.debug("Skipping %s: no %s sibling", name, self.public_suffix)
        return found

    def scan(self) -> ManifestResult:
        """Scan the key directory and overwrite the cache with the result.

        Raises:
            ConfigError: If the directory cannot be read or the cache written.
        """
        entries = self.find_keys()
        self._write_cache(entries)
        if entries:
            logger.info("Found %d key pair(s) in %s", len(entries), self.key_dir)
        else:
            logger.info("No key pairs found in %s", self.key_dir)
        return ManifestResult(entries=tuple(entries), cache_path=self.cache_path)

    def import_list(self, list_path: Path) -> ManifestResult:
        """Populate the cache from a user-maintained list of basenames.

        Raises:
            ConfigError: If the list file cannot be read or the cache written.
        """
        try:
            entries = read_list_file(list_path)
        except LoadError as e:
            raise ConfigError(e.message) from e
        self._write_cache(entries)
        logger.info("Imported %d key name(s) from %s", len(entries), list_path)
        return ManifestResult(entries=tuple(entries), cache_path=self.cache_path)

    def read_cache(self) -> list[str] | None:
        """Cached basenames, or None if no scan has ever been cached."""
        try:
            text = self.cache_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot read manifest cache %s: %s", self.cache_path, e)
            return None
        return [line for line in text.splitlines() if line]

    def cached_count(self) -> int:
        """Number of lines in the cache (0 if never scanned)."""
        return len(self.read_cache() or [])

    def fingerprint(self, entries: list[str] | tuple[str, ...]) -> str:
        """SHA-256 over sorted basenames and their modification times.

        Missing files contribute a fixed marker, so deleting a key changes
        the fingerprint even when the name stays in the manifest.
        """
        digest = hashlib.sha256()
        for name in sorted(entries):
            try:
                mtime = (self.key_dir / name).stat().st_mtime_ns
            except OSError:
                mtime = -1
            digest.update(f"{name}\0{mtime}\n".encode())
        return digest.hexdigest()

    def _write_cache(self, entries: list[str]) -> None:
        content = "".join(f"{name}\n" for name in entries)
        try:
            secure_mkdir(self.cache_path.parent)
            secure_write_atomic(self.cache_path, content)
        except OSError as e:
            raise ConfigError(f"Cannot write manifest cache {self.cache_path}: {e}") from e
        logger.debug("Wrote %d entr(ies) to %s", len(entries), self.cache_path)
