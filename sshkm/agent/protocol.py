"""Parsing and formatting of `NAME=value;` assignment lines.

ssh-agent -s prints Bourne shell assignments; the persisted agent record uses
the same form so it can be `source`d by a login shell. Both go through this
module.

Example ssh-agent output:
    SSH_AUTH_SOCK=/tmp/ssh-XXXXXXabc/agent.4242; export SSH_AUTH_SOCK;
    SSH_AGENT_PID=4243; export SSH_AGENT_PID;
    echo Agent pid 4243;
"""

from __future__ import annotations

import re
from typing import Literal

from sshkm.agent.types import AgentDescriptor
from sshkm.core.constants import AGENT_PID_VAR, AUTH_SOCK_VAR

ShellFlavor = Literal["sh", "fish"]

# NAME=value; where value may be single- or double-quoted
_ASSIGNMENT = re.compile(
    r"""^\s*(?P<name>[A-Za-z_][A-Za-z0-9_]*)=
        (?:'(?P<sq>[^']*)'|"(?P<dq>[^"]*)"|(?P<bare>[^;\s]*))
        \s*;""",
    re.VERBOSE,
)


class ProtocolError(ValueError):
    """Raised when assignment text lacks a usable socket or pid."""


def parse_assignments(text: str) -> dict[str, str]:
    """Collect NAME=value; assignments, one per line.

    Lines that are not assignments (comments, `echo ...`) are skipped.
    A later assignment of the same name wins.
    """
    values: dict[str, str] = {}
    for line in text.splitlines():
        match = _ASSIGNMENT.match(line)
        if not match:
            continue
        value = match.group("sq")
        if value is None:
            value = match.group("dq")
        if value is None:
            value = match.group("bare") or ""
        values[match.group("name")] = value
    return values


def parse_descriptor(text: str) -> AgentDescriptor:
    """Extract an AgentDescriptor from assignment text.

    Raises:
        ProtocolError: If either variable is missing or empty, or the pid is
            not a positive integer.
    """
    values = parse_assignments(text)
    sock = values.get(AUTH_SOCK_VAR, "")
    raw_pid = values.get(AGENT_PID_VAR, "")

    if not sock:
        raise ProtocolError(f"{AUTH_SOCK_VAR} missing or empty")
    if not raw_pid:
        raise ProtocolError(f"{AGENT_PID_VAR} missing or empty")
    try:
        pid = int(raw_pid)
    except ValueError as e:
        raise ProtocolError(f"{AGENT_PID_VAR} is not numeric: {raw_pid!r}") from e
    if pid <= 0:
        raise ProtocolError(f"{AGENT_PID_VAR} is not positive: {pid}")

    return AgentDescriptor(socket_path=sock, pid=pid)


def _sh_quote(value: str) -> str:
    return "'" + value.replace("'", "'\"'\"'") + "'"


def format_assignments(descriptor: AgentDescriptor, shell: ShellFlavor = "sh") -> str:
    """Render export lines for a descriptor.

    The "sh" flavor matches what ssh-agent -s prints and is what the agent
    record stores. The "fish" flavor is for `sshkm env --shell fish`.
    """
    if shell == "fish":
        return (
            f"set -gx {AUTH_SOCK_VAR} {_sh_quote(descriptor.socket_path)};\n"
            f"set -gx {AGENT_PID_VAR} {descriptor.pid};\n"
        )
    return (
        f"{AUTH_SOCK_VAR}={_sh_quote(descriptor.socket_path)}; export {AUTH_SOCK_VAR};\n"
        f"{AGENT_PID_VAR}={descriptor.pid}; export {AGENT_PID_VAR};\n"
    )
