"""
Config check use case — validate sbprovision.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from sbprovision.core.config.loader import ConfigError, find_config_file, load_config
from sbprovision.core.models.config import ProvisionConfig


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: ProvisionConfig | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "config": self.config.model_dump(mode="json") if self.config else None,
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate the configuration and flag risky settings.

    Args:
        config_path: Optional explicit path to sbprovision.yml.
    """
    result = ConfigCheckResult()

    if config_path is None:
        config_path = find_config_file()
        if config_path is None:
            result.warnings.append("No sbprovision.yml found; built-in defaults apply.")
    result.config_path = config_path

    try:
        config = load_config(config_path, search=False)
        result.config = config
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    # Semantic checks
    if not config.managed_settings:
        result.warnings.append("No managed_settings: refind.conf settings will not be enforced.")

    if config.managed_settings.get("use_nvram", "false").lower() != "false":
        result.warnings.append(
            "use_nvram is not 'false'; rEFInd will keep state in NVRAM."
        )

    if not config.key_name or "/" in config.key_name:
        result.errors.append(f"key_name must be a plain file name, got {config.key_name!r}")

    if config.boot_manager_dir.startswith("/"):
        result.errors.append(
            f"boot_manager_dir must be relative to the ESP, got {config.boot_manager_dir!r}"
        )

    for title, body in config.managed_entries.items():
        if not body:
            result.warnings.append(f"Managed entry {title!r} has an empty body.")

    if config.provision_when_enabled:
        result.warnings.append(
            "provision_when_enabled is set: runs will proceed even with Secure Boot on."
        )

    result.valid = len(result.errors) == 0
    return result
