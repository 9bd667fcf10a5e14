"""Tests for the Reconciler count and fingerprint strategies."""

from pathlib import Path

import pytest

from sshkm.config.schema import ReconcileStrategy
from sshkm.keys.manifest import KeyManifestScanner, ManifestResult
from sshkm.keys.reconcile import Reconciler


@pytest.fixture
def scanner(key_dir: Path, tmp_path: Path) -> KeyManifestScanner:
    return KeyManifestScanner(key_dir, tmp_path / "state" / "keys")


def _pairs(key_dir: Path, *names: str) -> None:
    for name in names:
        (key_dir / name).write_text("private")
        (key_dir / f"{name}.pub").write_text("public")


def _load_identities(fake_tools, handle, *names: str) -> None:
    fake_tools.identities[handle.socket_path] = [f"256 SHA256:{n} {n} (ED25519)" for n in names]


class TestCountStrategy:
    def test_equal_counts_skip_load(self, fake_tools, handle, scanner, key_dir: Path) -> None:
        """Reachable agent with N identities and N manifest lines: no load."""
        _pairs(key_dir, "a", "b")
        manifest = scanner.scan()
        _load_identities(fake_tools, handle, "a", "b")

        decision = Reconciler(fake_tools, scanner).reconcile(handle, manifest)

        assert decision.needs_load is False
        assert decision.agent_count == 2
        assert decision.manifest_count == 2

    def test_empty_agent_and_empty_manifest_skip(self, fake_tools, handle, scanner) -> None:
        manifest = scanner.scan()

        decision = Reconciler(fake_tools, scanner).reconcile(handle, manifest)

        assert decision.needs_load is False
        assert decision.agent_count == 0
        assert decision.manifest_count == 0

    def test_mismatch_needs_load(self, fake_tools, handle, scanner, key_dir: Path) -> None:
        _pairs(key_dir, "a", "b", "c")
        manifest = scanner.scan()
        _load_identities(fake_tools, handle, "a")

        decision = Reconciler(fake_tools, scanner).reconcile(handle, manifest)

        assert decision.needs_load is True
        assert "1 key(s)" in decision.reason
        assert decision.manifest_count == 3

    def test_unreachable_needs_load(self, fake_tools, handle, scanner, key_dir: Path) -> None:
        _pairs(key_dir, "a")
        manifest = scanner.scan()
        fake_tools.unreachable.add(handle.socket_path)

        decision = Reconciler(fake_tools, scanner).reconcile(handle, manifest)

        assert decision.needs_load is True
        assert decision.agent_count is None
        assert decision.reason == "agent unreachable"

    def test_count_comes_from_cache_file(self, fake_tools, handle, scanner, key_dir: Path) -> None:
        """The cache line count, not the in-memory manifest, is compared."""
        _pairs(key_dir, "a", "b")
        scanner.scan()
        _load_identities(fake_tools, handle, "x", "y")
        stale = ManifestResult(entries=("a",), cache_path=scanner.cache_path)

        decision = Reconciler(fake_tools, scanner).reconcile(handle, stale)

        assert decision.manifest_count == 2
        assert decision.needs_load is False

    def test_same_count_drift_not_detected(self, fake_tools, handle, scanner, key_dir: Path) -> None:
        """Known limitation: different identities with the same count look equal."""
        _pairs(key_dir, "a")
        manifest = scanner.scan()
        _load_identities(fake_tools, handle, "someone-else")

        assert Reconciler(fake_tools, scanner).reconcile(handle, manifest).needs_load is False


class TestFingerprintStrategy:
    @pytest.fixture
    def reconciler(self, fake_tools, scanner, tmp_path: Path) -> Reconciler:
        return Reconciler(
            fake_tools,
            scanner,
            strategy=ReconcileStrategy.FINGERPRINT,
            fingerprint_file=tmp_path / "state" / "keys.fingerprint",
        )

    def test_no_record_needs_load(self, reconciler, fake_tools, handle, scanner, key_dir: Path) -> None:
        _pairs(key_dir, "a")
        manifest = scanner.scan()
        _load_identities(fake_tools, handle, "a")

        decision = reconciler.reconcile(handle, manifest)

        assert decision.needs_load is True
        assert "changed" in decision.reason

    def test_recorded_fingerprint_skips(self, reconciler, fake_tools, handle, scanner, key_dir: Path) -> None:
        _pairs(key_dir, "a")
        manifest = scanner.scan()
        _load_identities(fake_tools, handle, "a")
        reconciler.record_loaded(manifest)

        assert reconciler.reconcile(handle, manifest).needs_load is False

    def test_swapped_key_detected(self, reconciler, fake_tools, handle, scanner, key_dir: Path) -> None:
        """Same count, different key set: fingerprint catches it."""
        _pairs(key_dir, "a")
        reconciler.record_loaded(scanner.scan())
        (key_dir / "a").unlink()
        (key_dir / "a.pub").unlink()
        _pairs(key_dir, "b")
        manifest = scanner.scan()
        _load_identities(fake_tools, handle, "a")

        assert reconciler.reconcile(handle, manifest).needs_load is True

    def test_clear_record(self, reconciler, fake_tools, handle, scanner, key_dir: Path) -> None:
        _pairs(key_dir, "a")
        manifest = scanner.scan()
        _load_identities(fake_tools, handle, "a")
        reconciler.record_loaded(manifest)

        reconciler.clear_record()

        assert reconciler.reconcile(handle, manifest).needs_load is True

    def test_count_strategy_records_nothing(self, fake_tools, scanner, tmp_path: Path) -> None:
        fingerprint_file = tmp_path / "fp"
        reconciler = Reconciler(fake_tools, scanner, fingerprint_file=fingerprint_file)

        reconciler.record_loaded(scanner.scan())

        assert not fingerprint_file.exists()
