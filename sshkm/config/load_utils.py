"""File loading helpers for config files and key list files.

Use:
- load_json_file() for required JSON files (raises LoadError if not found)
- load_json_file_optional() for optional config (returns None if not found)
- read_list_file() for user-supplied key lists (one basename per line)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from sshkm.core.errors import LoadError

logger = logging.getLogger(__name__)


def load_json_file(path: Path, error_context: str = "") -> dict[str, Any]:
    """Load and parse a JSON object file.

    Args:
        path: Path to the JSON file to load.
        error_context: Optional prefix for error messages (e.g., "config").

    Returns:
        Parsed JSON as a dict. Returns empty dict if file is empty.

    Raises:
        LoadError: If the file doesn't exist, can't be read, contains invalid JSON,
            or contains non-dict JSON.
    """
    context_prefix = f"{error_context}: " if error_context else ""

    if not path.exists():
        raise LoadError(f"{context_prefix}File not found: {path}")

    try:
        content = path.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise LoadError(f"{context_prefix}Failed to read file {path}: {e}") from e

    content = content.strip()
    if not content:
        return {}

    try:
        result = json.loads(content)
    except json.JSONDecodeError as e:
        raise LoadError(f"{context_prefix}Invalid JSON in {path}: {e}") from e

    if not isinstance(result, dict):
        raise LoadError(
            f"{context_prefix}Expected object in {path}, got {type(result).__name__}"
        )

    return result


def load_json_file_optional(path: Path, error_context: str = "") -> dict[str, Any] | None:
    """Load JSON file if it exists, returning None for missing files.

    Raises:
        LoadError: If file exists but can't be read or contains invalid JSON.
    """
    if not path.is_file():
        logger.debug("Config file not found: %s", path)
        return None

    logger.debug("Loading config file: %s", path)
    return load_json_file(path, error_context)


def read_list_file(path: Path) -> list[str]:
    """Read key basenames from a user list file.

    Blank lines and lines starting with '#' (after leading whitespace) are
    ignored. Surrounding whitespace is stripped from each entry.

    Raises:
        LoadError: If the file is missing or unreadable.
    """
    if not path.is_file():
        raise LoadError(f"Key list file not found or not a file: {path}")
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise LoadError(f"Failed to read key list file {path}: {e}") from e

    entries = []
    for line in lines:
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        entries.append(stripped)
    return entries
