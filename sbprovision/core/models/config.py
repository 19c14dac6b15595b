"""
Provisioning configuration — loaded from sbprovision.yml.

Every field has a default, so an absent file is a valid configuration.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


SigningPolicy = Literal["best_effort", "mandatory"]


def _default_settings() -> dict[str, str]:
    return {
        "use_nvram": "false",
        "use_graphics_for": "linux,windows",
        "scanfor": "internal,external,optical,manual",
        "showtools": "shell,memtest,mok_tool,shutdown,reboot,exit",
    }


class ProvisionConfig(BaseModel):
    """Operator policy for a provisioning run."""

    model_config = ConfigDict(extra="forbid")

    # ── Paths ────────────────────────────────────────────────────
    esp_path: str | None = None
    boot_manager_dir: str = "EFI/refind"    # relative to the ESP
    lock_path: str = "/run/sbprovision.lock"
    instructions_path: str = "/tmp/secure_boot_enrollment.json"

    # ── Keys ─────────────────────────────────────────────────────
    key_dir: str = "/etc/refind.d/keys"
    key_name: str = "refind_local"
    certificate_subject: str = "/CN=Locally generated rEFInd key/"
    key_bits: int = Field(default=4096, ge=2048)
    validity_days: int = Field(default=3650, gt=0)

    # ── Signing ──────────────────────────────────────────────────
    signing_policy: SigningPolicy = "best_effort"

    # ── Boot manager configuration ───────────────────────────────
    managed_settings: dict[str, str] = Field(default_factory=_default_settings)
    managed_entries: dict[str, list[str]] = Field(default_factory=dict)
    windows_entry: bool = True

    # ── Firmware ─────────────────────────────────────────────────
    boot_entry_label: str = "rEFInd Shim"
    provision_when_enabled: bool = False
