"""Decide whether the agent's identity set needs refreshing.

The agent is asked how many identities it holds and that number is compared
with the manifest cache line count. Loading is skipped only when the agent
is reachable and the counts match.

Two keys swapped for two others go unnoticed by a pure count comparison;
the fingerprint strategy additionally compares basenames and mtimes against
what was recorded after the last successful load.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from sshkm.agent.tools import AgentTools
from sshkm.agent.types import SessionHandle
from sshkm.config.schema import ReconcileStrategy
from sshkm.core.secure_io import remove_file, secure_mkdir, secure_write_atomic
from sshkm.keys.manifest import KeyManifestScanner, ManifestResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileDecision:
    """Whether to load, and the numbers the decision was based on.

    agent_count is None when the agent could not be queried.
    """

    needs_load: bool
    reason: str
    agent_count: int | None
    manifest_count: int


class Reconciler:
    """Compares the agent's identities with the manifest cache."""

    def __init__(
        self,
        tools: AgentTools,
        scanner: KeyManifestScanner,
        strategy: ReconcileStrategy = ReconcileStrategy.COUNT,
        fingerprint_file: Path | None = None,
    ) -> None:
        self.tools = tools
        self.scanner = scanner
        self.strategy = strategy
        self.fingerprint_file = fingerprint_file

    def reconcile(self, handle: SessionHandle, manifest: ManifestResult) -> ReconcileDecision:
        cached = self.scanner.read_cache()
        manifest_count = len(cached) if cached is not None else len(manifest)

        query = self.tools.list_identities(handle)
        agent_count = query.count
        if agent_count is None:
            logger.warning("Could not query agent identities (ssh-add -l status %d)", query.returncode)
            return ReconcileDecision(True, "agent unreachable", None, manifest_count)

        logger.debug("Agent holds %d identit(ies); manifest lists %d", agent_count, manifest_count)
        if agent_count != manifest_count:
            return ReconcileDecision(
                True,
                f"agent has {agent_count} key(s), manifest lists {manifest_count}",
                agent_count,
                manifest_count,
            )

        if self.strategy is ReconcileStrategy.FINGERPRINT:
            recorded = self._read_fingerprint()
            current = self.scanner.fingerprint(manifest.entries)
            if recorded != current:
                logger.info("Key files changed since last load")
                return ReconcileDecision(
                    True, "key files changed since last load", agent_count, manifest_count
                )

        return ReconcileDecision(False, "agent is up to date", agent_count, manifest_count)

    def record_loaded(self, manifest: ManifestResult) -> None:
        """Remember the manifest fingerprint after a successful load.

        No-op under the count strategy. Write failures are logged; the next
        reconcile will simply ask for a reload.
        """
        if self.strategy is not ReconcileStrategy.FINGERPRINT or self.fingerprint_file is None:
            return
        digest = self.scanner.fingerprint(manifest.entries)
        try:
            secure_mkdir(self.fingerprint_file.parent)
            secure_write_atomic(self.fingerprint_file, digest + "\n")
        except OSError as e:
            logger.warning("Cannot record key fingerprint in %s: %s", self.fingerprint_file, e)
            return
        logger.debug("Recorded key fingerprint %s", digest[:12])

    def clear_record(self) -> None:
        if self.fingerprint_file is not None:
            remove_file(self.fingerprint_file)

    def _read_fingerprint(self) -> str | None:
        if self.fingerprint_file is None:
            return None
        try:
            return self.fingerprint_file.read_text(encoding="utf-8").strip() or None
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot read key fingerprint %s: %s", self.fingerprint_file, e)
            return None
