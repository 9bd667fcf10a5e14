"""Configuration loading with fail-fast behavior.

Config comes from one JSON file: an explicit path, else ~/.sshkm/config.json
when it exists, else the Pydantic defaults. Environment variables then
override individual paths so a profile script can redirect sshkm without a
config file.
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from sshkm.config.load_utils import load_json_file, load_json_file_optional
from sshkm.config.schema import Config
from sshkm.core.constants import ENV_LOG_DIR, ENV_SSH_DIR, get_default_config_path
from sshkm.core.errors import ConfigError, LoadError

logger = logging.getLogger(__name__)


def load_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """Load and validate configuration.

    Args:
        path: Explicit config file path. Must exist when given.
        environ: Environment to read overrides from. Defaults to os.environ.

    Returns:
        Validated Config object.

    Raises:
        ConfigError: If the file is missing (explicit path only), contains
            invalid JSON, or fails validation.
    """
    env = os.environ if environ is None else environ

    try:
        if path is not None:
            data: dict[str, Any] = load_json_file(path, error_context="config")
            source = str(path)
        else:
            default_path = get_default_config_path()
            data = load_json_file_optional(default_path, error_context="config") or {}
            source = str(default_path) if data else "defaults"
    except LoadError as e:
        raise ConfigError(e.message) from e

    data = _apply_env_overrides(data, env)
    logger.debug("Config loaded from: %s", source)

    try:
        return Config.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Config validation failed ({source}): {e}") from e


def _apply_env_overrides(data: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    """Overlay SKM_* environment variables onto raw config data."""
    result = dict(data)

    ssh_dir = env.get(ENV_SSH_DIR)
    if ssh_dir:
        logger.debug("%s overrides ssh_dir: %s", ENV_SSH_DIR, ssh_dir)
        result["ssh_dir"] = ssh_dir

    log_dir = env.get(ENV_LOG_DIR)
    if log_dir:
        logger.debug("%s overrides logging.dir: %s", ENV_LOG_DIR, log_dir)
        logging_section = dict(result.get("logging") or {})
        logging_section["dir"] = log_dir
        result["logging"] = logging_section

    return result
