"""Pydantic models for sshkm configuration validation."""

import os
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sshkm.core.constants import get_default_ssh_dir, get_state_dir


def _expand_path(value: str | Path | None) -> Path | None:
    """Expand ~ and environment variables, then make absolute."""
    if value is None:
        return None
    expanded = os.path.expandvars(os.path.expanduser(str(value)))
    return Path(os.path.abspath(expanded))


class LoadPolicy(str, Enum):
    """How manifest entries are handed to ssh-add."""

    PER_ENTRY = "per_entry"  # One ssh-add per key, precise outcomes
    BATCH = "batch"  # One ssh-add for all keys, faster, no per-key visibility


class ReconcileStrategy(str, Enum):
    """How the reconciler decides the agent already holds the manifest."""

    COUNT = "count"  # Identity count equals manifest length
    FINGERPRINT = "fingerprint"  # Count matches and manifest unchanged since last load


class ToolsConfig(BaseModel):
    """External agent executables.

    Example in config.json:
        "tools": {"ssh_add": "/usr/local/bin/ssh-add", "use_keychain": "never"}
    """

    model_config = ConfigDict(extra="forbid")

    ssh_agent: str = "ssh-agent"
    """Executable that spawns a new agent (`ssh-agent -s`)."""

    ssh_add: str = "ssh-add"
    """Executable that queries, adds and removes identities."""

    use_keychain: Literal["auto", "always", "never"] = "auto"
    """Pass --apple-use-keychain to ssh-add. "auto" means only on macOS."""

    timeout: float | None = Field(default=None, gt=0)
    """Seconds before an agent command is abandoned. None waits forever."""


class LoggingConfig(BaseModel):
    """File logging settings."""

    model_config = ConfigDict(extra="forbid")

    dir: Path | None = None
    """Log directory. None picks a platform default."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    max_bytes: int = Field(default=1024 * 1024, gt=0)
    """Size at which sshkm.log is rotated."""

    backup_count: int = Field(default=5, ge=0)

    @field_validator("dir", mode="before")
    @classmethod
    def _expand_dir(cls, v: str | Path | None) -> Path | None:
        return _expand_path(v)


class Config(BaseModel):
    """Root sshkm configuration."""

    model_config = ConfigDict(extra="forbid")

    ssh_dir: Path = Field(default_factory=get_default_ssh_dir)
    """Directory scanned for key pairs."""

    agent_env_file: Path = Field(default_factory=lambda: get_state_dir() / "agent.env")
    """Persisted agent record (socket + pid)."""

    manifest_file: Path = Field(default_factory=lambda: get_state_dir() / "keys")
    """Cached list of loadable key basenames."""

    public_suffix: str = Field(default=".pub", min_length=1)
    """Suffix identifying a public key sibling."""

    load_policy: LoadPolicy = LoadPolicy.PER_ENTRY
    reconcile_strategy: ReconcileStrategy = ReconcileStrategy.COUNT

    spawn_settle_seconds: float = Field(default=0.5, ge=0)
    """Pause after spawning before the confirming probe."""

    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("ssh_dir", "agent_env_file", "manifest_file", mode="before")
    @classmethod
    def _expand_paths(cls, v: str | Path) -> Path | None:
        return _expand_path(v)

    @property
    def fingerprint_file(self) -> Path:
        """Where the manifest fingerprint of the last successful load is kept."""
        return self.manifest_file.with_name(self.manifest_file.name + ".fingerprint")
