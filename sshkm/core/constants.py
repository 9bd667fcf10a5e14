"""Core constants and paths for sshkm.

Single source of truth for per-user paths. Modules import from here instead
of hardcoding `Path.home() / ".ssh"` and friends.
"""

import os
import sys
from pathlib import Path

SKM_DIR_NAME = ".sshkm"
LOG_FILENAME = "sshkm.log"

# Environment variables understood by the bootstrap layer
ENV_SSH_DIR = "SKM_SSH_DIR"
ENV_LOG_DIR = "SKM_LOG_DIR"

# Environment variables ssh-agent hands to its clients
AUTH_SOCK_VAR = "SSH_AUTH_SOCK"
AGENT_PID_VAR = "SSH_AGENT_PID"


def get_skm_dir() -> Path:
    """Get ~/.sshkm (global config directory)."""
    return Path.home() / SKM_DIR_NAME


def get_default_config_path() -> Path:
    """Get default config file path."""
    return get_skm_dir() / "config.json"


def get_default_ssh_dir() -> Path:
    """Get ~/.ssh (key directory)."""
    return Path.home() / ".ssh"


def get_state_dir() -> Path:
    """Get ~/.config/sshkm (agent record and manifest cache)."""
    return Path.home() / ".config" / "sshkm"


def get_default_log_dir() -> Path:
    """Get the platform default log directory.

    macOS logs under ~/Library/Logs. Linux prefers /var/log when the caller
    can write there, otherwise ~/.local/log. Anything else falls back to
    ~/.ssh/logs.
    """
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Logs" / "sshkm"
    if sys.platform.startswith("linux"):
        if os.access("/var/log", os.W_OK):
            return Path("/var/log/sshkm")
        return Path.home() / ".local" / "log" / "sshkm"
    return get_default_ssh_dir() / "logs"
