"""Value types shared by the agent session components."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from sshkm.core.constants import AGENT_PID_VAR, AUTH_SOCK_VAR


@dataclass(frozen=True)
class AgentDescriptor:
    """A (socket, pid) pair naming one agent instance.

    Instances may be incomplete (empty socket, pid 0) when built from a
    partial environment; the prober treats those as dead.
    """

    socket_path: str
    pid: int

    @property
    def is_complete(self) -> bool:
        return bool(self.socket_path) and self.pid > 0

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> AgentDescriptor | None:
        """Build a descriptor from SSH_AUTH_SOCK / SSH_AGENT_PID.

        Only CLI adapters call this; library code receives descriptors
        explicitly.

        Returns:
            None when neither variable is set. A non-numeric pid becomes 0.
        """
        env = os.environ if environ is None else environ
        sock = env.get(AUTH_SOCK_VAR, "")
        raw_pid = env.get(AGENT_PID_VAR, "")
        if not sock and not raw_pid:
            return None
        try:
            pid = int(raw_pid)
        except ValueError:
            pid = 0
        return cls(socket_path=sock, pid=pid)

    def __str__(self) -> str:
        return f"{self.socket_path or '<no socket>'} (pid {self.pid or '?'})"


class SessionSource(Enum):
    """Where an established session's descriptor came from."""

    INHERITED = "inherited"
    PERSISTED = "persisted"
    SPAWNED = "spawned"


@dataclass(frozen=True)
class SessionHandle:
    """An established, probed-live session.

    Passed explicitly to every operation that talks to the agent. The
    process environment is never modified; commands get their environment
    from environ().
    """

    descriptor: AgentDescriptor
    source: SessionSource

    @property
    def socket_path(self) -> str:
        return self.descriptor.socket_path

    @property
    def pid(self) -> int:
        return self.descriptor.pid

    def environ(self, base: Mapping[str, str] | None = None) -> dict[str, str]:
        """Environment for a child process that should talk to this agent."""
        return agent_environ(self.descriptor, base)


def agent_environ(
    descriptor: AgentDescriptor,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Copy of base (default os.environ) pointing SSH_AUTH_SOCK/SSH_AGENT_PID at descriptor."""
    env = dict(os.environ if base is None else base)
    env[AUTH_SOCK_VAR] = descriptor.socket_path
    env[AGENT_PID_VAR] = str(descriptor.pid)
    return env


class IdentityStatus(Enum):
    """Result class of a query-identities call (ssh-add -l)."""

    PRESENT = "present"  # exit 0
    EMPTY = "empty"  # exit 1
    UNREACHABLE = "unreachable"  # exit >= 2


@dataclass(frozen=True)
class IdentityQuery:
    """What the agent reported when asked to list identities."""

    status: IdentityStatus
    lines: tuple[str, ...] = ()
    returncode: int = 0

    @property
    def reachable(self) -> bool:
        return self.status != IdentityStatus.UNREACHABLE

    @property
    def count(self) -> int | None:
        """Number of loaded identities, or None if the agent was unreachable."""
        if self.status == IdentityStatus.UNREACHABLE:
            return None
        if self.status == IdentityStatus.EMPTY:
            return 0
        return len(self.lines)


class AddStatus(Enum):
    """Exit class of an add-identities or remove-identity call."""

    OK = "ok"  # exit 0
    PARTIAL = "partial"  # exit 1, typically a passphrase was needed
    UNREACHABLE = "unreachable"  # exit >= 2


class RemoveAllStatus(Enum):
    """Exit class of remove-all-identities (ssh-add -D)."""

    REMOVED = "removed"  # exit 0, including "agent was already empty"
    NOT_REMOVED = "not_removed"  # exit 1, nothing to remove or agent half-reachable
    UNREACHABLE = "unreachable"  # exit >= 2


def classify_add_exit(returncode: int) -> AddStatus:
    if returncode == 0:
        return AddStatus.OK
    if returncode == 1:
        return AddStatus.PARTIAL
    return AddStatus.UNREACHABLE


def classify_remove_all_exit(returncode: int) -> RemoveAllStatus:
    if returncode == 0:
        return RemoveAllStatus.REMOVED
    if returncode == 1:
        return RemoveAllStatus.NOT_REMOVED
    return RemoveAllStatus.UNREACHABLE
