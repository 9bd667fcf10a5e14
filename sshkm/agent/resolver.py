"""Session resolution: reuse the running agent, or start exactly one.

State machine:

    NoSession --(cached live)-----> Established   (no disk write)
              --(inherited live)--> Established   (no disk write)
              --(record live)-----> Established
              --(record dead)-----> invalidate, continue
              --(CHECK_ONLY)------> Failed        (normal negative result)
              --(ENSURE: spawn)---> save, probe --> Established
                                            |
                                            +--> rollback --> Failed

A spawned descriptor only becomes visible once a probe confirms it. If the
confirming probe fails, the record is deleted and the agent terminated so
that no later call can pick up an unconfirmed descriptor.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from sshkm.agent.lock import spawn_lock
from sshkm.agent.prober import LivenessProber, ProbeResult
from sshkm.agent.store import SessionStateStore
from sshkm.agent.tools import AgentTools, SpawnError
from sshkm.agent.types import AgentDescriptor, SessionHandle, SessionSource
from sshkm.core.errors import AgentUnavailableError, ConfigError
from sshkm.core.process import terminate_pid
from sshkm.core.secure_io import secure_mkdir

logger = logging.getLogger(__name__)


class ResolveMode(Enum):
    """ENSURE may start an agent; CHECK_ONLY never has side effects beyond cleanup."""

    ENSURE = "ensure"
    CHECK_ONLY = "check_only"


class ResolveState(Enum):
    ESTABLISHED = "established"
    FAILED = "failed"


@dataclass(frozen=True)
class Resolution:
    """Result of SessionResolver.resolve().

    Attributes:
        state: ESTABLISHED or FAILED.
        handle: The live session when established.
        reason: Why resolution failed (None when established).
        mode: The mode that was requested.
    """

    state: ResolveState
    handle: SessionHandle | None = None
    reason: str | None = None
    mode: ResolveMode = ResolveMode.ENSURE

    @property
    def established(self) -> bool:
        return self.state is ResolveState.ESTABLISHED

    @property
    def source(self) -> SessionSource | None:
        return self.handle.source if self.handle else None

    def require(self) -> SessionHandle:
        """Return the handle or raise AgentUnavailableError."""
        if self.handle is None:
            raise AgentUnavailableError(
                f"SSH agent not available: {self.reason or 'unknown reason'}",
                reason=self.reason,
            )
        return self.handle


class SessionResolver:
    """Finds or creates the agent session for this process.

    The resolver remembers the session it established, so repeated
    ENSURE calls in one process re-probe that session instead of touching
    the record again.
    """

    def __init__(
        self,
        store: SessionStateStore,
        prober: LivenessProber,
        tools: AgentTools,
        key_dir: Path,
        settle_seconds: float = 0.5,
    ) -> None:
        self.store = store
        self.prober = prober
        self.tools = tools
        self.key_dir = key_dir
        self.settle_seconds = settle_seconds
        self._current: SessionHandle | None = None

    @property
    def current(self) -> SessionHandle | None:
        return self._current

    def forget(self) -> None:
        """Drop the remembered session (the agent itself is untouched)."""
        self._current = None

    def resolve(
        self,
        mode: ResolveMode = ResolveMode.ENSURE,
        inherited: AgentDescriptor | None = None,
    ) -> Resolution:
        """Ensure (or just check for) a live agent session.

        Args:
            mode: ENSURE may spawn; CHECK_ONLY never does.
            inherited: Descriptor handed down by the caller's environment, if any.

        Returns:
            Resolution with a handle when established.

        Raises:
            ConfigError: If the key directory or record cannot be written
                while spawning.
        """
        # 1. Cheap path: what this process already has, then what it inherited
        cached = self._current
        if cached is not None:
            if self.prober.is_live(cached.descriptor):
                logger.debug("Reusing %s agent %s", cached.source.value, cached.descriptor)
                return self._adopt(cached.descriptor, cached.source, mode)
            logger.debug("Cached %s agent %s is not live", cached.source.value, cached.descriptor)
            self._current = None

        if inherited is not None and (cached is None or inherited != cached.descriptor):
            if self.prober.is_live(inherited):
                logger.debug("Reusing inherited agent %s", inherited)
                return self._adopt(inherited, SessionSource.INHERITED, mode)
            logger.debug("Inherited agent %s is not live", inherited)

        # 2-3. Persisted record
        established = self._try_record(mode)
        if established is not None:
            return established

        # 4. Nothing usable
        if mode is ResolveMode.CHECK_ONLY:
            logger.debug("No live agent found (check only)")
            return Resolution(ResolveState.FAILED, reason="no agent available", mode=mode)

        return self._spawn(mode)

    def _adopt(
        self,
        descriptor: AgentDescriptor,
        source: SessionSource,
        mode: ResolveMode,
    ) -> Resolution:
        handle = SessionHandle(descriptor=descriptor, source=source)
        self._current = handle
        return Resolution(ResolveState.ESTABLISHED, handle=handle, mode=mode)

    def _try_record(self, mode: ResolveMode) -> Resolution | None:
        stored = self.store.load()
        if stored is None:
            return None

        result = self.prober.probe(stored)
        if result is ProbeResult.LIVE:
            logger.info("Reusing agent from %s: %s", self.store.path, stored)
            return self._adopt(stored, SessionSource.PERSISTED, mode)

        logger.info(
            "Agent record %s is stale (%s); removing", self.store.path, result.value
        )
        self.store.invalidate()
        return None

    def _spawn(self, mode: ResolveMode) -> Resolution:
        with spawn_lock(self.store.path):
            # Another process may have spawned while we waited
            established = self._try_record(mode)
            if established is not None:
                return established
            return self._spawn_locked(mode)

    def _spawn_locked(self, mode: ResolveMode) -> Resolution:
        try:
            secure_mkdir(self.key_dir)
        except OSError as e:
            raise ConfigError(f"Cannot create key directory {self.key_dir}: {e}") from e

        logger.info("Starting new ssh-agent")
        try:
            descriptor = self.tools.spawn()
        except SpawnError as e:
            logger.error("Failed to start ssh-agent: %s", e)
            return Resolution(ResolveState.FAILED, reason=str(e), mode=mode)

        self._current = SessionHandle(descriptor=descriptor, source=SessionSource.SPAWNED)
        try:
            self.store.save(descriptor)
        except ConfigError:
            self._rollback(descriptor)
            raise

        if self.settle_seconds:
            time.sleep(self.settle_seconds)

        result = self.prober.probe(descriptor)
        if not result.is_live:
            logger.error(
                "Started ssh-agent %s but it failed verification (%s)", descriptor, result.value
            )
            self._rollback(descriptor)
            return Resolution(
                ResolveState.FAILED,
                reason=f"new agent failed verification ({result.value})",
                mode=mode,
            )

        logger.info("New ssh-agent started and verified: %s", descriptor)
        return Resolution(ResolveState.ESTABLISHED, handle=self._current, mode=mode)

    def _rollback(self, descriptor: AgentDescriptor) -> None:
        self._current = None
        self.store.invalidate()
        if not terminate_pid(descriptor.pid):
            logger.warning("Could not terminate unverified agent pid %d", descriptor.pid)
