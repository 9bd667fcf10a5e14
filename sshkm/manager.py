"""Caller-facing facade over the resolver, scanner, reconciler and loader.

Example usage:
    from sshkm.bootstrap import build_manager
    from sshkm.config import load_config

    manager = build_manager(load_config())
    handle = manager.ensure_session().require()
    report = manager.sync(handle)
    print(report.describe())
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from sshkm.agent.resolver import Resolution, ResolveMode, SessionResolver
from sshkm.agent.tools import AgentTools
from sshkm.agent.types import (
    AddStatus,
    AgentDescriptor,
    IdentityQuery,
    RemoveAllStatus,
    SessionHandle,
)
from sshkm.core.errors import AgentUnavailableError
from sshkm.keys.loader import CredentialLoader, LoadSummary
from sshkm.keys.manifest import KeyManifestScanner, ManifestResult
from sshkm.keys.reconcile import ReconcileDecision, Reconciler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncReport:
    """Everything one sync pass decided and did.

    summary is None when reconciliation found nothing to do.
    """

    manifest: ManifestResult
    decision: ReconcileDecision
    summary: LoadSummary | None = None

    @property
    def loaded(self) -> bool:
        return self.summary is not None

    @property
    def success(self) -> bool:
        return self.summary is None or self.summary.success

    def describe(self) -> str:
        if self.summary is None:
            if self.manifest.is_empty:
                return "Nothing to load."
            return f"All {self.decision.manifest_count} key(s) already loaded."
        return self.summary.describe()


class KeyManager:
    """Wires the components together for one configured key directory."""

    def __init__(
        self,
        resolver: SessionResolver,
        scanner: KeyManifestScanner,
        reconciler: Reconciler,
        loader: CredentialLoader,
        tools: AgentTools,
    ) -> None:
        self.resolver = resolver
        self.scanner = scanner
        self.reconciler = reconciler
        self.loader = loader
        self.tools = tools

    # === Session ===

    def ensure_session(
        self,
        mode: ResolveMode = ResolveMode.ENSURE,
        inherited: AgentDescriptor | None = None,
    ) -> Resolution:
        return self.resolver.resolve(mode, inherited=inherited)

    # === Keys ===

    def scan_manifest(self) -> ManifestResult:
        self.scanner.validate_directory()
        return self.scanner.scan()

    def reconcile(self, handle: SessionHandle, manifest: ManifestResult) -> ReconcileDecision:
        return self.reconciler.reconcile(handle, manifest)

    def load_credentials(self, handle: SessionHandle, manifest: ManifestResult) -> LoadSummary:
        """Load the manifest into the agent.

        Raises:
            AgentUnavailableError: If every key failed because the agent
                could not be reached.
        """
        summary = self.loader.load(handle, manifest)
        if summary.all_unreachable:
            raise AgentUnavailableError(
                f"SSH agent at {handle.socket_path} stopped responding while loading keys",
                reason="agent unreachable",
            )
        if summary.success and not summary.nothing_to_load:
            self.reconciler.record_loaded(manifest)
        return summary

    def sync(
        self,
        handle: SessionHandle,
        list_file: Path | None = None,
        force: bool = False,
    ) -> SyncReport:
        """Scan (or import a list), reconcile, and load if needed.

        Args:
            handle: Established session.
            list_file: Take basenames from this file instead of scanning.
            force: Remove all identities first and always load.

        Raises:
            ConfigError: If the key directory or cache is unusable.
            AgentUnavailableError: If the agent stops answering mid-load.
        """
        self.scanner.validate_directory()
        if list_file is not None:
            manifest = self.scanner.import_list(list_file)
        else:
            manifest = self.scanner.scan()

        if force:
            self.remove_all(handle)
            decision = ReconcileDecision(
                needs_load=True,
                reason="forced reload",
                agent_count=0,
                manifest_count=len(manifest),
            )
        else:
            decision = self.reconcile(handle, manifest)

        if not decision.needs_load:
            logger.info("Skipping load: %s", decision.reason)
            return SyncReport(manifest=manifest, decision=decision)

        logger.info("Loading keys: %s", decision.reason)
        summary = self.load_credentials(handle, manifest)
        return SyncReport(manifest=manifest, decision=decision, summary=summary)

    def list_identities(self, handle: SessionHandle) -> IdentityQuery:
        return self.tools.list_identities(handle)

    def remove(self, handle: SessionHandle, basename: str) -> AddStatus:
        return self.loader.remove(handle, basename)

    def remove_all(self, handle: SessionHandle) -> RemoveAllStatus:
        status = self.loader.remove_all(handle)
        if status is RemoveAllStatus.REMOVED:
            self.reconciler.clear_record()
        return status
