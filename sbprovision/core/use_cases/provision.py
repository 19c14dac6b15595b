"""
Provision use case — load configuration and run the engine.

The full vertical slice from ``sbprovision provision`` to a final
ProvisioningState.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from sbprovision.adapters.registry import AdapterRegistry
from sbprovision.core.config.loader import ConfigError, load_config
from sbprovision.core.engine.provisioner import EngineOptions, ProvisioningEngine
from sbprovision.core.models.config import ProvisionConfig
from sbprovision.core.models.state import ProvisioningState

logger = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    """Result of a provisioning run."""

    state: ProvisioningState | None = None
    config: ProvisionConfig | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.state is not None and self.state.succeeded

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def to_dict(self) -> dict:
        if self.error:
            return {"status": "error", "error": self.error}

        state = self.state
        assert state is not None
        result: dict = {
            "run_id": state.run_id,
            "status": "advised" if state.succeeded else "failed",
            "stage": state.stage.value,
            "last_completed": state.last_completed.value,
            "completed": [s.value for s in state.completed],
            "short_circuited": state.short_circuited,
            "annotations": state.annotations,
        }
        if state.failure:
            result["failure"] = state.failure.model_dump(mode="json")
        if state.initial_probe:
            result["secure_boot_initial"] = state.initial_probe.status.value
        if state.last_probe:
            result["secure_boot"] = state.last_probe.status.value
        if state.profile:
            result["platform"] = {
                "distro": state.profile.distro_id,
                "family": state.profile.family,
                "package_manager": state.profile.package_manager,
                "efi_arch": state.profile.efi_arch,
                "esp_path": state.profile.esp_path,
            }
        if state.capabilities:
            result["capabilities"] = [
                r.model_dump(mode="json") for r in state.capabilities.results
            ]
        if state.keypair:
            result["keypair"] = state.keypair.model_dump(mode="json")
        if state.deployment:
            result["deployment"] = [r.model_dump(mode="json") for r in state.deployment.results]
        for key in ("signing", "config", "boot_entry", "plan"):
            value = getattr(state, key)
            if value is not None:
                result[key] = value.model_dump(mode="json")
        if self.config and state.plan and not state.short_circuited and state.succeeded:
            result["instructions_path"] = self.config.instructions_path
        return result


def run_provision(
    config_path: Path | None = None,
    options: EngineOptions | None = None,
    registry: AdapterRegistry | None = None,
    cancel: threading.Event | None = None,
) -> ProvisionResult:
    """Load configuration and drive the engine to Advised or Failed.

    Args:
        config_path: Optional explicit path to sbprovision.yml.
        options: Per-run switches (skip deps, force, ...).
        registry: Optional pre-configured adapter registry.
        cancel: Set from a signal handler to stop between stages.

    Returns:
        ProvisionResult with the final state, or a configuration error.
    """
    result = ProvisionResult()

    try:
        config = load_config(config_path)
    except ConfigError as e:
        result.error = str(e)
        return result
    result.config = config

    if registry is None:
        from sbprovision.adapters import default_registry

        registry = default_registry()

    engine = ProvisioningEngine(config, registry, options)
    result.state = engine.run(cancel)
    return result
