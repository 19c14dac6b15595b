"""
Platform model — what the engine knows about the host it runs on.

A PlatformProfile is resolved once at the start of a run and consulted
by every stage afterwards. Distro-specific knowledge (package names,
where shim and MokManager land after installation) lives here as data,
never as per-stage branching.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


PackageManagerKind = Literal["apt", "pacman", "dnf", "zypper"]


class RequiredCapability(str, Enum):
    """A tool or package the trust chain depends on."""

    VALIDATOR = "validator"
    KEY_ENROLLMENT_TOOL = "key_enrollment_tool"
    BOOT_ENTRY_TOOL = "boot_entry_tool"
    SIGNING_TOOL = "signing_tool"
    BOOT_MANAGER_PACKAGE = "boot_manager_package"
    CERTIFICATE_TOOL = "certificate_tool"


class FileExistsCheck(BaseModel):
    """Satisfied when any of the listed files exists."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["file"] = "file"
    paths: tuple[str, ...]

    def describe(self) -> str:
        return " or ".join(self.paths)


class ExecutableOnPath(BaseModel):
    """Satisfied when any of the listed executables is on PATH."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["executable"] = "executable"
    names: tuple[str, ...]

    def describe(self) -> str:
        return " or ".join(f"{n} on PATH" for n in self.names)


ExistenceCheck = FileExistsCheck | ExecutableOnPath


class CapabilitySpec(BaseModel):
    """How one capability is provided on one platform."""

    model_config = ConfigDict(frozen=True)

    capability: RequiredCapability
    package: str
    check: ExistenceCheck = Field(discriminator="kind")


class PlatformProfile(BaseModel):
    """The resolved identity of the host.

    Immutable: built by the distro resolver, never mutated afterwards.
    """

    model_config = ConfigDict(frozen=True)

    distro_id: str
    family: str
    package_manager: PackageManagerKind
    efi_arch: Literal["x64", "aa64"] = "x64"
    validator_paths: tuple[str, ...] = ()
    key_enrollment_paths: tuple[str, ...] = ()
    boot_manager_dir: str = "/usr/share/refind"
    esp_path: str = "/boot/efi"
    capabilities: dict[RequiredCapability, CapabilitySpec] = Field(default_factory=dict)

    def spec_for(self, capability: RequiredCapability) -> CapabilitySpec:
        """Look up the package/check mapping for a capability."""
        return self.capabilities[capability]

    @property
    def fallback_loader_name(self) -> str:
        """Removable-media default loader name (``BOOTX64.EFI``)."""
        return f"BOOT{self.efi_arch.upper()}.EFI"

    @property
    def validator_name(self) -> str:
        return f"shim{self.efi_arch}.efi"

    @property
    def key_enrollment_name(self) -> str:
        return f"mm{self.efi_arch}.efi"

    @property
    def boot_manager_binary_name(self) -> str:
        return f"refind_{self.efi_arch}.efi"

    @property
    def second_stage_name(self) -> str:
        """What the validator chain-loads from its own directory."""
        return f"grub{self.efi_arch}.efi"
