"""Logging setup and object graph construction.

Usage:
    config = load_config()
    log_file = configure_logging(config, verbose=args.verbose, quiet=args.quiet)
    manager = build_manager(config)
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from sshkm.agent.prober import LivenessProber
from sshkm.agent.resolver import SessionResolver
from sshkm.agent.store import SessionStateStore
from sshkm.agent.tools import AgentTools
from sshkm.config.schema import Config
from sshkm.core.constants import LOG_FILENAME, get_default_log_dir, get_default_ssh_dir
from sshkm.core.secure_io import SECURE_FILE_MODE, secure_mkdir
from sshkm.keys.loader import CredentialLoader
from sshkm.keys.manifest import KeyManifestScanner
from sshkm.keys.reconcile import Reconciler
from sshkm.manager import KeyManager

logger = logging.getLogger(__name__)

ROOT_LOGGER_NAME = "sshkm"


class _OwnerOnlyRotatingFileHandler(RotatingFileHandler):
    """RotatingFileHandler whose log files (including rollovers) are 0o600."""

    def _open(self):  # type: ignore[override]
        stream = super()._open()
        try:
            os.chmod(self.baseFilename, SECURE_FILE_MODE)
        except OSError:
            stream.close()
            raise
        return stream


def configure_logging(
    config: Config,
    verbose: bool = False,
    quiet: bool = False,
    log_dir: Path | None = None,
) -> Path | None:
    """Configure the sshkm namespace logger.

    Installs a rotating file handler at `<log_dir>/sshkm.log` (mode 0o600)
    and a stderr handler. A missing log directory is created 0o700; an
    existing one is used as is. If it is unusable, ~/.ssh/logs is tried
    before file logging is disabled. Reconfiguring replaces previously
    installed handlers.

    Args:
        config: Loaded configuration (logging section is used).
        verbose: Log DEBUG to the file instead of the configured level.
        quiet: Only show errors on stderr.
        log_dir: Overrides config.logging.dir.

    Returns:
        Path to the log file, or None when file logging is disabled because
        no candidate directory was usable.
    """
    level = logging.DEBUG if verbose else getattr(logging, config.logging.level)
    console_level = logging.ERROR if quiet else logging.WARNING

    skm_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(skm_logger.handlers):
        skm_logger.removeHandler(handler)
        handler.close()
    skm_logger.setLevel(min(level, console_level))
    skm_logger.propagate = False

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    skm_logger.addHandler(console_handler)

    target_dir = log_dir or config.logging.dir or get_default_log_dir()
    fallback_dir = get_default_ssh_dir() / "logs"
    candidates = [target_dir] if target_dir == fallback_dir else [target_dir, fallback_dir]

    file_handler = None
    for candidate in candidates:
        try:
            secure_mkdir(candidate, tighten=False)
            file_handler = _OwnerOnlyRotatingFileHandler(
                candidate / LOG_FILENAME,
                maxBytes=config.logging.max_bytes,
                backupCount=config.logging.backup_count,
                encoding="utf-8",
            )
        except OSError as e:
            logger.warning("Cannot log to %s: %s", candidate, e)
            continue
        break

    if file_handler is None:
        logger.warning("File logging disabled")
        return None

    log_file = Path(file_handler.baseFilename)

    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    skm_logger.addHandler(file_handler)

    logger.debug("Logging configured: %s", log_file)
    return log_file


def build_manager(config: Config) -> KeyManager:
    """Create a KeyManager and its collaborators from config."""
    tools = AgentTools(config.tools)
    scanner = KeyManifestScanner(
        key_dir=config.ssh_dir,
        cache_path=config.manifest_file,
        public_suffix=config.public_suffix,
    )
    resolver = SessionResolver(
        store=SessionStateStore(config.agent_env_file),
        prober=LivenessProber(tools),
        tools=tools,
        key_dir=config.ssh_dir,
        settle_seconds=config.spawn_settle_seconds,
    )
    return KeyManager(
        resolver=resolver,
        scanner=scanner,
        reconciler=Reconciler(
            tools,
            scanner,
            strategy=config.reconcile_strategy,
            fingerprint_file=config.fingerprint_file,
        ),
        loader=CredentialLoader(tools, config.ssh_dir, policy=config.load_policy),
        tools=tools,
    )
