"""Agent session management: probing, persistence and resolution.

Example usage:
    from sshkm.agent import (
        AgentTools, LivenessProber, ResolveMode, SessionResolver, SessionStateStore,
    )

    tools = AgentTools()
    resolver = SessionResolver(
        store=SessionStateStore(Path("~/.config/sshkm/agent.env").expanduser()),
        prober=LivenessProber(tools),
        tools=tools,
        key_dir=Path("~/.ssh").expanduser(),
    )
    handle = resolver.resolve(ResolveMode.ENSURE).require()
"""

from sshkm.agent.prober import LivenessProber, ProbeResult
from sshkm.agent.protocol import ProtocolError, format_assignments, parse_descriptor
from sshkm.agent.resolver import Resolution, ResolveMode, ResolveState, SessionResolver
from sshkm.agent.store import SessionStateStore
from sshkm.agent.tools import AgentTools, SpawnError
from sshkm.agent.types import (
    AddStatus,
    AgentDescriptor,
    IdentityQuery,
    IdentityStatus,
    RemoveAllStatus,
    SessionHandle,
    SessionSource,
)

__all__ = [
    "AddStatus",
    "AgentDescriptor",
    "AgentTools",
    "IdentityQuery",
    "IdentityStatus",
    "LivenessProber",
    "ProbeResult",
    "ProtocolError",
    "RemoveAllStatus",
    "Resolution",
    "ResolveMode",
    "ResolveState",
    "SessionHandle",
    "SessionResolver",
    "SessionSource",
    "SessionStateStore",
    "SpawnError",
    "format_assignments",
    "parse_descriptor",
]
