"""Shared pytest fixtures and configuration for pytest."""

import sys
from collections.abc import Sequence
from pathlib import Path

import pytest

from sshkm.agent.types import (
    AgentDescriptor,
    IdentityQuery,
    IdentityStatus,
    SessionHandle,
    SessionSource,
    classify_add_exit,
    classify_remove_all_exit,
)
from sshkm.core.process import ToolResult


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for platform-specific tests."""
    config.addinivalue_line("markers", "unix_only: mark test to run only on Unix")


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Auto-skip tests based on platform markers."""
    skip_unix = pytest.mark.skip(reason="Unix-only test")

    for item in items:
        if "unix_only" in item.keywords and sys.platform == "win32":
            item.add_marker(skip_unix)


class FakeAgentTools:
    """In-memory stand-in for AgentTools.

    Agents are (socket file, pid) pairs. A spawned agent gets a real file
    under `root` so the prober's socket check passes, and its pid is added
    to `live_pids`, which the `fake_tools` fixture wires into pid checks.
    """

    use_keychain = False

    def __init__(self, root: Path) -> None:
        self.root = root
        self.live_pids: set[int] = set()
        self.unreachable: set[str] = set()
        self.identities: dict[str, list[str]] = {}
        self.add_exit: dict[str, int] = {}
        self.remove_exit = 0
        self.remove_all_exit = 0
        self.spawn_error: Exception | None = None
        self.spawn_calls = 0
        self.add_calls: list[list[str]] = []
        self.remove_calls: list[str] = []
        self.terminated: list[int] = []
        self._next_pid = 40000

    def make_agent(self, live: bool = True) -> AgentDescriptor:
        self._next_pid += 1
        sock = self.root / f"agent.{self._next_pid}"
        sock.write_text("")
        if live:
            self.live_pids.add(self._next_pid)
        self.identities[str(sock)] = []
        return AgentDescriptor(socket_path=str(sock), pid=self._next_pid)

    def spawn(self) -> AgentDescriptor:
        self.spawn_calls += 1
        if self.spawn_error is not None:
            raise self.spawn_error
        return self.make_agent()

    def _socket(self, target: SessionHandle | AgentDescriptor) -> str:
        return target.socket_path

    def list_identities(self, target: SessionHandle | AgentDescriptor) -> IdentityQuery:
        sock = self._socket(target)
        if sock in self.unreachable:
            return IdentityQuery(IdentityStatus.UNREACHABLE, (), 2)
        lines = self.identities.get(sock, [])
        if not lines:
            return IdentityQuery(IdentityStatus.EMPTY, (), 1)
        return IdentityQuery(IdentityStatus.PRESENT, tuple(lines), 0)

    def add(self, handle: SessionHandle, paths: Sequence[Path]):
        names = [Path(p).name for p in paths]
        self.add_calls.append(names)
        sock = self._socket(handle)
        if sock in self.unreachable:
            code = 2
        else:
            codes = [self.add_exit.get(name, 0) for name in names]
            code = max(codes) if codes else 0
            for name in names:
                if self.add_exit.get(name, 0) == 0:
                    self.identities.setdefault(sock, []).append(f"256 SHA256:{name} {name} (ED25519)")
        result = ToolResult(argv=("ssh-add", *map(str, paths)), returncode=code)
        return classify_add_exit(code), result

    def remove(self, handle: SessionHandle, path: Path):
        self.remove_calls.append(Path(path).name)
        result = ToolResult(argv=("ssh-add", "-d", str(path)), returncode=self.remove_exit)
        return classify_add_exit(self.remove_exit), result

    def remove_all(self, handle: SessionHandle):
        if self.remove_all_exit == 0:
            self.identities[self._socket(handle)] = []
        result = ToolResult(argv=("ssh-add", "-D"), returncode=self.remove_all_exit)
        return classify_remove_all_exit(self.remove_all_exit), result


@pytest.fixture
def fake_tools(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FakeAgentTools:
    """FakeAgentTools whose live_pids drive pid checks and termination."""
    sock_dir = tmp_path / "sockets"
    sock_dir.mkdir()
    tools = FakeAgentTools(sock_dir)

    def fake_pid_exists(pid: int) -> bool:
        return pid in tools.live_pids

    def fake_terminate(pid: int, graceful_timeout: float = 0) -> bool:
        tools.terminated.append(pid)
        tools.live_pids.discard(pid)
        return True

    monkeypatch.setattr("sshkm.agent.prober.pid_exists", fake_pid_exists)
    monkeypatch.setattr("sshkm.agent.resolver.terminate_pid", fake_terminate)
    return tools


@pytest.fixture
def handle(fake_tools: FakeAgentTools) -> SessionHandle:
    """A live, established session on a fake agent."""
    return SessionHandle(descriptor=fake_tools.make_agent(), source=SessionSource.SPAWNED)


@pytest.fixture
def key_dir(tmp_path: Path) -> Path:
    path = tmp_path / "ssh"
    path.mkdir(mode=0o700)
    return path
