"""Configuration loading and validation."""

from sshkm.config.loader import load_config
from sshkm.config.schema import (
    Config,
    LoadPolicy,
    LoggingConfig,
    ReconcileStrategy,
    ToolsConfig,
)

__all__ = [
    "Config",
    "LoadPolicy",
    "LoggingConfig",
    "ReconcileStrategy",
    "ToolsConfig",
    "load_config",
]
