"""Liveness probing for candidate agents.

A candidate (socket, pid) pair is checked in order of cost, stopping at the
first failure:

    1. both fields present           -> else INCOMPLETE
    2. socket path is a socket       -> else NO_SOCKET
       (a regular file is accepted so tests can use plain files)
    3. pid answers signal 0          -> else NO_PROCESS
    4. ssh-add -l exits 0 or 1       -> else UNREACHABLE

Exit 1 from ssh-add -l means "no identities", which still proves the agent
is reachable.
"""

import logging
import os
import stat
from enum import Enum

from sshkm.agent.tools import AgentTools
from sshkm.agent.types import AgentDescriptor
from sshkm.core.process import pid_exists

logger = logging.getLogger(__name__)


class ProbeResult(Enum):
    """Outcome of a liveness probe.

    Attributes:
        LIVE: The agent answered a query.
        INCOMPLETE: Socket path or pid missing.
        NO_SOCKET: Socket path does not exist as a socket or file.
        NO_PROCESS: Pid does not exist or cannot be signalled.
        UNREACHABLE: ssh-add could not talk to the agent.
    """

    LIVE = "live"
    INCOMPLETE = "incomplete"
    NO_SOCKET = "no_socket"
    NO_PROCESS = "no_process"
    UNREACHABLE = "unreachable"

    @property
    def is_live(self) -> bool:
        return self is ProbeResult.LIVE


def _is_socket_like(path: str) -> bool:
    try:
        mode = os.stat(path).st_mode
    except OSError:
        return False
    return stat.S_ISSOCK(mode) or stat.S_ISREG(mode)


class LivenessProber:
    """Decides whether a descriptor names a live, responsive agent."""

    def __init__(self, tools: AgentTools) -> None:
        self.tools = tools

    def probe(self, descriptor: AgentDescriptor | None) -> ProbeResult:
        if descriptor is None or not descriptor.is_complete:
            logger.debug("Probe: descriptor incomplete (%s)", descriptor)
            return ProbeResult.INCOMPLETE

        if not _is_socket_like(descriptor.socket_path):
            logger.debug("Probe: socket %s not found", descriptor.socket_path)
            return ProbeResult.NO_SOCKET

        if not pid_exists(descriptor.pid):
            logger.debug("Probe: pid %d not running", descriptor.pid)
            return ProbeResult.NO_PROCESS

        query = self.tools.list_identities(descriptor)
        if not query.reachable:
            logger.debug(
                "Probe: agent at %s did not answer (ssh-add -l status %d)",
                descriptor.socket_path, query.returncode,
            )
            return ProbeResult.UNREACHABLE

        logger.debug("Probe: agent %s is live", descriptor)
        return ProbeResult.LIVE

    def is_live(self, descriptor: AgentDescriptor | None) -> bool:
        return self.probe(descriptor).is_live
