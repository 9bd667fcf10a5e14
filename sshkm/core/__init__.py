"""Core types, paths and filesystem helpers."""

from sshkm.core.errors import AgentUnavailableError, ConfigError, LoadError, SkmError
from sshkm.core.process import ToolResult, pid_exists, run_tool, terminate_pid
from sshkm.core.secure_io import (
    SECURE_DIR_MODE,
    SECURE_FILE_MODE,
    secure_mkdir,
    secure_write_atomic,
)

__all__ = [
    "SkmError",
    "ConfigError",
    "LoadError",
    "AgentUnavailableError",
    "ToolResult",
    "run_tool",
    "pid_exists",
    "terminate_pid",
    "SECURE_DIR_MODE",
    "SECURE_FILE_MODE",
    "secure_mkdir",
    "secure_write_atomic",
]
