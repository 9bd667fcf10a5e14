"""Tests for the KeyManager facade and the sync flow."""

from pathlib import Path
from unittest.mock import patch

import pytest

from sshkm.agent.prober import LivenessProber
from sshkm.agent.resolver import ResolveMode, SessionResolver
from sshkm.agent.store import SessionStateStore
from sshkm.agent.types import RemoveAllStatus, SessionSource
from sshkm.config.schema import LoadPolicy, ReconcileStrategy
from sshkm.core.errors import AgentUnavailableError, ConfigError
from sshkm.keys.loader import CredentialLoader, LoadStatus
from sshkm.keys.manifest import KeyManifestScanner
from sshkm.keys.reconcile import Reconciler
from sshkm.manager import KeyManager


def _keys(key_dir: Path, *names: str) -> None:
    for name in names:
        (key_dir / name).write_text("private")
        (key_dir / f"{name}.pub").write_text("public")


def _build(
    fake_tools,
    key_dir: Path,
    state_dir: Path,
    strategy: ReconcileStrategy = ReconcileStrategy.COUNT,
    policy: LoadPolicy = LoadPolicy.PER_ENTRY,
) -> KeyManager:
    scanner = KeyManifestScanner(key_dir, state_dir / "keys")
    return KeyManager(
        resolver=SessionResolver(
            store=SessionStateStore(state_dir / "agent.env"),
            prober=LivenessProber(fake_tools),
            tools=fake_tools,
            key_dir=key_dir,
            settle_seconds=0,
        ),
        scanner=scanner,
        reconciler=Reconciler(
            fake_tools, scanner, strategy=strategy, fingerprint_file=state_dir / "keys.fingerprint"
        ),
        loader=CredentialLoader(fake_tools, key_dir, policy=policy),
        tools=fake_tools,
    )


@pytest.fixture
def manager(fake_tools, key_dir: Path, tmp_path: Path) -> KeyManager:
    return _build(fake_tools, key_dir, tmp_path / "state")


class TestEnsureSession:
    def test_spawns_then_reuses(self, manager: KeyManager, fake_tools) -> None:
        first = manager.ensure_session()
        second = manager.ensure_session()

        assert first.source is SessionSource.SPAWNED
        assert second.handle.descriptor == first.handle.descriptor
        assert fake_tools.spawn_calls == 1

    def test_check_only(self, manager: KeyManager, fake_tools) -> None:
        assert not manager.ensure_session(ResolveMode.CHECK_ONLY).established
        assert fake_tools.spawn_calls == 0


class TestSync:
    def test_loads_missing_keys(self, manager: KeyManager, fake_tools, key_dir: Path) -> None:
        _keys(key_dir, "a", "b")
        handle = manager.ensure_session().require()

        report = manager.sync(handle)

        assert report.loaded
        assert report.success
        assert report.summary.added == 2
        assert report.describe() == "2 key(s) added, 0 key(s) failed/skipped."

    def test_second_sync_skips_load(self, manager: KeyManager, fake_tools, key_dir: Path) -> None:
        """After a full load counts match, so the loader is not invoked again."""
        _keys(key_dir, "a", "b")
        handle = manager.ensure_session().require()
        manager.sync(handle)
        calls_after_first = len(fake_tools.add_calls)

        report = manager.sync(handle)

        assert not report.loaded
        assert len(fake_tools.add_calls) == calls_after_first
        assert report.describe() == "All 2 key(s) already loaded."

    def test_equal_counts_never_invoke_loader(self, manager: KeyManager, fake_tools, key_dir: Path) -> None:
        _keys(key_dir, "a")
        handle = manager.ensure_session().require()
        fake_tools.identities[handle.socket_path] = ["256 SHA256:a a (ED25519)"]

        with patch.object(manager.loader, "load") as load:
            report = manager.sync(handle)

        load.assert_not_called()
        assert report.summary is None

    def test_empty_key_dir(self, manager: KeyManager, fake_tools) -> None:
        """Empty manifest: no load needed, "Nothing to load.", success."""
        handle = manager.ensure_session().require()

        report = manager.sync(handle)

        assert report.manifest.is_empty
        assert not report.decision.needs_load
        assert report.describe() == "Nothing to load."
        assert report.success
        assert fake_tools.add_calls == []

    def test_partial_failure_is_reported_not_raised(
        self, manager: KeyManager, fake_tools, key_dir: Path
    ) -> None:
        _keys(key_dir, "a", "b")
        fake_tools.add_exit["b"] = 1
        handle = manager.ensure_session().require()

        report = manager.sync(handle)

        assert report.success
        statuses = {o.basename: o.status for o in report.summary.outcomes}
        assert statuses == {"a": LoadStatus.ADDED, "b": LoadStatus.NEEDS_PASSPHRASE}

    def test_all_unreachable_raises(self, manager: KeyManager, fake_tools, key_dir: Path) -> None:
        _keys(key_dir, "a")
        handle = manager.ensure_session().require()
        fake_tools.unreachable.add(handle.socket_path)

        with pytest.raises(AgentUnavailableError):
            manager.sync(handle)

    def test_force_removes_all_then_loads(self, manager: KeyManager, fake_tools, key_dir: Path) -> None:
        _keys(key_dir, "a")
        handle = manager.ensure_session().require()
        manager.sync(handle)

        report = manager.sync(handle, force=True)

        assert report.decision.reason == "forced reload"
        assert report.summary.added == 1
        assert fake_tools.add_calls == [["a"], ["a"]]
        assert fake_tools.identities[handle.socket_path] == ["256 SHA256:a a (ED25519)"]

    def test_list_file_replaces_scan(
        self, manager: KeyManager, fake_tools, key_dir: Path, tmp_path: Path
    ) -> None:
        _keys(key_dir, "a", "b", "c")
        list_file = tmp_path / "list.txt"
        list_file.write_text("# only this one\nb\n")
        handle = manager.ensure_session().require()

        report = manager.sync(handle, list_file=list_file)

        assert report.manifest.entries == ("b",)
        assert fake_tools.add_calls == [["b"]]

    def test_unusable_key_dir(self, manager: KeyManager, fake_tools) -> None:
        handle = manager.ensure_session().require()
        with patch("sshkm.keys.manifest.check_directory_access", return_value=["not readable"]):
            with pytest.raises(ConfigError):
                manager.sync(handle)

    def test_fingerprint_recorded_after_success(
        self, fake_tools, key_dir: Path, tmp_path: Path
    ) -> None:
        state = tmp_path / "state"
        manager = _build(fake_tools, key_dir, state, strategy=ReconcileStrategy.FINGERPRINT)
        _keys(key_dir, "a")
        handle = manager.ensure_session().require()

        first = manager.sync(handle)
        second = manager.sync(handle)

        assert first.loaded
        assert (state / "keys.fingerprint").exists()
        assert not second.loaded


class TestRemoval:
    def test_remove_all_clears_fingerprint(self, fake_tools, key_dir: Path, tmp_path: Path) -> None:
        state = tmp_path / "state"
        manager = _build(fake_tools, key_dir, state, strategy=ReconcileStrategy.FINGERPRINT)
        _keys(key_dir, "a")
        handle = manager.ensure_session().require()
        manager.sync(handle)

        assert manager.remove_all(handle) is RemoveAllStatus.REMOVED
        assert not (state / "keys.fingerprint").exists()

    def test_list_identities(self, manager: KeyManager, fake_tools, key_dir: Path) -> None:
        _keys(key_dir, "a")
        handle = manager.ensure_session().require()
        manager.sync(handle)

        assert manager.list_identities(handle).count == 1
