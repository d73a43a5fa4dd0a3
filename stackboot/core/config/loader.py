"""
Configuration loader — reads stackboot.yml into a BootstrapConfig.

The file is optional: every field has a default, so "no file" means
"the standard starter".  A file that exists but is not a YAML mapping,
or that the schema rejects, is an error.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from stackboot.core.models.config import BootstrapConfig

logger = logging.getLogger(__name__)

CONFIG_FILE = "stackboot.yml"

# How many directories above the start the search may climb
_SEARCH_DEPTH = 20


class ConfigError(Exception):
    """Raised when stackboot.yml is unreadable or invalid."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Nearest stackboot.yml in ``start_dir`` (default: cwd) or above it."""
    start = (start_dir or Path.cwd()).resolve()
    for directory in [start, *start.parents][:_SEARCH_DEPTH + 1]:
        candidate = directory / CONFIG_FILE
        if candidate.is_file():
            return candidate
    return None


def _read_mapping(path: Path) -> dict:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    # An empty file is an empty mapping.
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def load_config(path: Path | None = None, search: bool = True) -> BootstrapConfig:
    """Load and validate the bootstrap configuration.

    Args:
        path: Explicit config file; it must exist.
        search: Without ``path``, look upward from cwd for stackboot.yml.

    Raises:
        ConfigError: Explicit file missing, unreadable or invalid.
    """
    if path is not None and not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    if path is None and search:
        path = find_config_file()
    if path is None:
        logger.debug("No %s, using defaults", CONFIG_FILE)
        return BootstrapConfig()

    try:
        config = BootstrapConfig.model_validate(_read_mapping(path))
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info("Config %s: node %s, python >= %s", path, config.node_version, config.python_min)
    return config
