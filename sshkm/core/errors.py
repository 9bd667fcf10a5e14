"""Typed exception hierarchy for sshkm."""

from __future__ import annotations


class SkmError(Exception):
    """Base class for all sshkm errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigError(SkmError):
    """Raised when required directories, state files or config cannot be used."""


class LoadError(SkmError):
    """Raised when a JSON config or key list file cannot be read or parsed."""


class AgentUnavailableError(SkmError):
    """Raised when no agent session can be reached or started."""

    def __init__(self, message: str, reason: str | None = None) -> None:
        self.reason = reason
        super().__init__(message)
