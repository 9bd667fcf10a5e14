"""Persisted agent record.

The record lets independent invocations (login shells, cron jobs, the CLI)
find the one agent already running for this user. It is a shell-sourceable
file:

    SSH_AUTH_SOCK='/tmp/ssh-XXXX/agent.123'; export SSH_AUTH_SOCK;
    SSH_AGENT_PID=124; export SSH_AGENT_PID;
    # Agent started on 2026-01-01T10:00:00+00:00 by alice@host (pid 99)

Security properties:
    - File mode 0o600, parent directory 0o700
    - Replaced atomically; readers never see a half-written record
    - Deleted as soon as it is found to point at a dead agent
"""

from __future__ import annotations

import getpass
import logging
import os
import socket
from datetime import datetime, timezone
from pathlib import Path

from sshkm.agent.protocol import ProtocolError, format_assignments, parse_descriptor
from sshkm.agent.types import AgentDescriptor
from sshkm.core.errors import ConfigError
from sshkm.core.secure_io import remove_file, secure_mkdir, secure_write_atomic

logger = logging.getLogger(__name__)


def _creator_identity() -> str:
    try:
        user = getpass.getuser()
    except Exception:  # getuser raises OSError or KeyError depending on platform
        user = "unknown"
    return f"{user}@{socket.gethostname()}"


class SessionStateStore:
    """Reads, writes and deletes the agent record at a fixed path."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> AgentDescriptor | None:
        """Read the record.

        Returns:
            The stored descriptor, or None when the file is absent. A file
            that exists but cannot be parsed is invalidated and reported as
            absent.
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No agent record at %s", self.path)
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Agent record %s unreadable (%s); discarding", self.path, e)
            self.invalidate()
            return None

        try:
            descriptor = parse_descriptor(text)
        except ProtocolError as e:
            logger.warning("Agent record %s is malformed (%s); discarding", self.path, e)
            self.invalidate()
            return None

        logger.debug("Loaded agent record: %s", descriptor)
        return descriptor

    def save(self, descriptor: AgentDescriptor) -> None:
        """Write the record, replacing any previous one.

        Raises:
            ConfigError: If the directory or file cannot be written.
        """
        stamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
        content = (
            format_assignments(descriptor, "sh")
            + f"# Agent started on {stamp} by {_creator_identity()} (pid {os.getpid()})\n"
        )
        try:
            secure_mkdir(self.path.parent)
            secure_write_atomic(self.path, content)
        except OSError as e:
            raise ConfigError(f"Cannot write agent record {self.path}: {e}") from e
        logger.info("Agent record saved to %s", self.path)

    def invalidate(self) -> None:
        """Delete the record. Failure is logged, never raised."""
        if remove_file(self.path):
            logger.debug("Agent record %s removed", self.path)
