"""
Configuration loader — reads sbprovision.yml into ProvisionConfig.

Lookup order: explicit path, then sbprovision.yml in the working
directory or any parent, then the system-wide file. No file at all is
fine: every setting has a default.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from sbprovision.core.models.config import ProvisionConfig

logger = logging.getLogger(__name__)

CONFIG_FILE = "sbprovision.yml"
SYSTEM_CONFIG = Path("/etc/sbprovision") / CONFIG_FILE


class ConfigError(Exception):
    """Raised when the configuration file is unreadable or invalid."""


def find_config_file(
    start_dir: Path | None = None,
    system_config: Path = SYSTEM_CONFIG,
) -> Path | None:
    """Search for sbprovision.yml walking up from ``start_dir``.

    Falls back to the system-wide file.

    Returns:
        Path to the config file, or None if there is none.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    if system_config.is_file():
        return system_config
    return None


def load_config(path: Path | None = None, *, search: bool = True) -> ProvisionConfig:
    """Load and validate the provisioning configuration.

    Args:
        path: Explicit config file. Must exist when given.
        search: When no path is given, look for one (see module doc).

    Raises:
        ConfigError: explicit file missing, unreadable YAML, or a value
            that fails validation.
    """
    if path is None:
        path = find_config_file() if search else None
        if path is None:
            logger.debug("No %s found, using defaults", CONFIG_FILE)
            return ProvisionConfig()
    elif not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # Allow the whole file to sit under a top-level "provision" key
    if set(data) == {"provision"} and isinstance(data["provision"], dict):
        data = data["provision"]

    # YAML reads `false` / `4096` as non-strings; rEFInd settings are text
    settings = data.get("managed_settings")
    if isinstance(settings, dict):
        data["managed_settings"] = {str(k): _setting_text(v) for k, v in settings.items()}

    try:
        config = ProvisionConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info("Loaded configuration from %s", path)
    return config


def _setting_text(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return "" if value is None else str(value)
