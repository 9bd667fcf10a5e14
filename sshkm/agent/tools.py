"""Subprocess boundary to ssh-agent and ssh-add.

The agent is opaque: everything sshkm knows about it comes from these
commands' exit statuses and stdout. The exit vocabulary is fixed:

    ssh-agent -s      prints SSH_AUTH_SOCK/SSH_AGENT_PID assignments
    ssh-add -l        0 = identities listed, 1 = none, >=2 = cannot connect
    ssh-add PATH...   0 = all added, 1 = some failed (passphrase), >=2 = cannot connect
    ssh-add -d PATH   same as add
    ssh-add -D        0 = removed (or none), 1 = nothing removed, >=2 = cannot connect
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from sshkm.agent.protocol import ProtocolError, parse_descriptor
from sshkm.agent.types import (
    AddStatus,
    AgentDescriptor,
    IdentityQuery,
    IdentityStatus,
    RemoveAllStatus,
    SessionHandle,
    agent_environ,
    classify_add_exit,
    classify_remove_all_exit,
)
from sshkm.config.schema import ToolsConfig
from sshkm.core.process import ToolResult, run_tool

logger = logging.getLogger(__name__)


class SpawnError(Exception):
    """Raised when ssh-agent could not be started or its output was unusable."""


class AgentTools:
    """Runs the agent primitives for a given session handle."""

    def __init__(self, config: ToolsConfig | None = None) -> None:
        self.config = config or ToolsConfig()

    @property
    def use_keychain(self) -> bool:
        if self.config.use_keychain == "always":
            return True
        if self.config.use_keychain == "never":
            return False
        return sys.platform == "darwin"

    def _ssh_add(self, args: Sequence[str], handle: SessionHandle | AgentDescriptor) -> ToolResult:
        descriptor = handle.descriptor if isinstance(handle, SessionHandle) else handle
        env = agent_environ(descriptor)
        return run_tool(
            [self.config.ssh_add, *args],
            env=env,
            timeout=self.config.timeout,
        )

    # === Spawn ===

    def spawn(self) -> AgentDescriptor:
        """Start a new agent and return its descriptor.

        Raises:
            SpawnError: If ssh-agent fails or prints no usable assignments.
        """
        result = run_tool([self.config.ssh_agent, "-s"], timeout=self.config.timeout)
        if result.returncode != 0:
            raise SpawnError(
                f"{self.config.ssh_agent} -s exited with status {result.returncode}: "
                f"{result.output or 'no output'}"
            )
        try:
            return parse_descriptor(result.stdout)
        except ProtocolError as e:
            logger.debug("ssh-agent output was: %r", result.stdout)
            raise SpawnError(f"Could not parse {self.config.ssh_agent} output: {e}") from e

    # === Query ===

    def list_identities(self, target: SessionHandle | AgentDescriptor) -> IdentityQuery:
        """List identities (ssh-add -l).

        Accepts a bare descriptor so the prober can query a candidate that
        has not been established yet.
        """
        result = self._ssh_add(["-l"], target)
        if result.returncode == 0:
            lines = tuple(line for line in result.stdout.splitlines() if line.strip())
            return IdentityQuery(IdentityStatus.PRESENT, lines, result.returncode)
        if result.returncode == 1:
            return IdentityQuery(IdentityStatus.EMPTY, (), result.returncode)
        logger.debug("ssh-add -l failed (%d): %s", result.returncode, result.output)
        return IdentityQuery(IdentityStatus.UNREACHABLE, (), result.returncode)

    # === Add / remove ===

    def add(self, handle: SessionHandle, paths: Sequence[Path]) -> tuple[AddStatus, ToolResult]:
        """Add one or more key files to the agent."""
        args: list[str] = []
        if self.use_keychain:
            args.append("--apple-use-keychain")
        args.extend(str(p) for p in paths)
        result = self._ssh_add(args, handle)
        return classify_add_exit(result.returncode), result

    def remove(self, handle: SessionHandle, path: Path) -> tuple[AddStatus, ToolResult]:
        """Remove one identity, identified by its key file (ssh-add -d)."""
        result = self._ssh_add(["-d", str(path)], handle)
        return classify_add_exit(result.returncode), result

    def remove_all(self, handle: SessionHandle) -> tuple[RemoveAllStatus, ToolResult]:
        """Remove every identity (ssh-add -D)."""
        result = self._ssh_add(["-D"], handle)
        return classify_remove_all_exit(result.returncode), result
