"""Add manifest entries to the agent and classify each outcome.

Individual failures never raise: a key that needs a passphrase, or that has
disappeared from disk, is recorded in the LoadSummary and the remaining
keys are still attempted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from sshkm.agent.tools import AgentTools
from sshkm.agent.types import AddStatus, RemoveAllStatus, SessionHandle
from sshkm.config.schema import LoadPolicy
from sshkm.core.process import ToolResult
from sshkm.keys.manifest import ManifestResult

logger = logging.getLogger(__name__)


class LoadStatus(Enum):
    ADDED = "added"
    NEEDS_PASSPHRASE = "needs_passphrase"
    AGENT_UNREACHABLE = "agent_unreachable"
    FILE_MISSING = "file_missing"


_ADD_STATUS_MAP = {
    AddStatus.OK: LoadStatus.ADDED,
    AddStatus.PARTIAL: LoadStatus.NEEDS_PASSPHRASE,
    AddStatus.UNREACHABLE: LoadStatus.AGENT_UNREACHABLE,
}


@dataclass(frozen=True)
class LoadOutcome:
    basename: str
    status: LoadStatus
    detail: str = ""


@dataclass
class LoadSummary:
    """Per-key outcomes of one load pass."""

    policy: LoadPolicy = LoadPolicy.PER_ENTRY
    outcomes: list[LoadOutcome] = field(default_factory=list)

    @property
    def added(self) -> int:
        return sum(1 for o in self.outcomes if o.status is LoadStatus.ADDED)

    @property
    def failed(self) -> int:
        return len(self.outcomes) - self.added

    @property
    def nothing_to_load(self) -> bool:
        return not self.outcomes

    @property
    def success(self) -> bool:
        """At least one key was added, or there was nothing to add."""
        return self.nothing_to_load or self.added > 0

    @property
    def all_unreachable(self) -> bool:
        return bool(self.outcomes) and all(
            o.status is LoadStatus.AGENT_UNREACHABLE for o in self.outcomes
        )

    def describe(self) -> str:
        if self.nothing_to_load:
            return "Nothing to load."
        return f"{self.added} key(s) added, {self.failed} key(s) failed/skipped."


def _detail(result: ToolResult) -> str:
    return result.output.strip().splitlines()[-1] if result.output.strip() else ""


class CredentialLoader:
    """Loads key files into an established agent session."""

    def __init__(
        self,
        tools: AgentTools,
        key_dir: Path,
        policy: LoadPolicy = LoadPolicy.PER_ENTRY,
    ) -> None:
        self.tools = tools
        self.key_dir = key_dir
        self.policy = policy

    def key_path(self, basename: str) -> Path:
        return self.key_dir / basename

    def load(self, handle: SessionHandle, manifest: ManifestResult) -> LoadSummary:
        """Add every manifest entry to the agent.

        Returns:
            LoadSummary; success means at least one key was added (or the
            manifest was empty).
        """
        summary = LoadSummary(policy=self.policy)
        if manifest.is_empty:
            logger.info("No keys to load")
            return summary

        present: list[tuple[str, Path]] = []
        for basename in manifest.entries:
            path = self.key_path(basename)
            if not path.is_file():
                logger.warning("Key file not found: %s", path)
                summary.outcomes.append(
                    LoadOutcome(basename, LoadStatus.FILE_MISSING, f"{path} not found")
                )
                continue
            present.append((basename, path))

        if present:
            if self.policy is LoadPolicy.BATCH:
                summary.outcomes.extend(self._load_batch(handle, present))
            else:
                summary.outcomes.extend(self._load_each(handle, present))

        logger.info("Summary: %s", summary.describe())
        return summary

    def _load_each(
        self, handle: SessionHandle, present: list[tuple[str, Path]]
    ) -> list[LoadOutcome]:
        outcomes = []
        for basename, path in present:
            status, result = self.tools.add(handle, [path])
            load_status = _ADD_STATUS_MAP[status]
            if load_status is LoadStatus.ADDED:
                logger.info("Added key: %s", basename)
            elif load_status is LoadStatus.NEEDS_PASSPHRASE:
                logger.warning("Failed to add key %s (passphrase needed?)", basename)
            else:
                logger.error(
                    "Could not reach agent adding %s (status %d)", basename, result.returncode
                )
            outcomes.append(LoadOutcome(basename, load_status, _detail(result)))
        return outcomes

    def _load_batch(
        self, handle: SessionHandle, present: list[tuple[str, Path]]
    ) -> list[LoadOutcome]:
        status, result = self.tools.add(handle, [path for _, path in present])
        load_status = _ADD_STATUS_MAP[status]
        detail = _detail(result)
        if load_status is LoadStatus.ADDED:
            logger.info("Added %d key(s) in one call", len(present))
        elif load_status is LoadStatus.NEEDS_PASSPHRASE:
            # ssh-add does not say which of the batched keys failed
            logger.warning(
                "Batch add of %d key(s) partially failed; marking all as needing a passphrase",
                len(present),
            )
        else:
            logger.error("Could not reach agent for batch add (status %d)", result.returncode)
        return [LoadOutcome(basename, load_status, detail) for basename, _ in present]

    # === Removal ===

    def remove(self, handle: SessionHandle, basename: str) -> AddStatus:
        """Remove one identity by the basename of its key file (ssh-add -d)."""
        status, result = self.tools.remove(handle, self.key_path(basename))
        if status is AddStatus.OK:
            logger.info("Removed key: %s", basename)
        else:
            logger.warning(
                "Failed to remove key %s (status %d): %s",
                basename, result.returncode, _detail(result),
            )
        return status

    def remove_all(self, handle: SessionHandle) -> RemoveAllStatus:
        status, result = self.tools.remove_all(handle)
        if status is RemoveAllStatus.REMOVED:
            logger.info("All keys removed from agent")
        elif status is RemoveAllStatus.NOT_REMOVED:
            logger.warning("No keys removed (agent empty or not reachable): %s", _detail(result))
        else:
            logger.error("Failed to remove keys from agent (status %d)", result.returncode)
        return status
