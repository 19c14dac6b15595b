"""
Distro resolver — turn host markers into a PlatformProfile.

Read-only and side-effect free: reads /etc/os-release and the mount
table, looks binaries up on PATH, and never runs anything. Every probe
is injectable so tests can describe a host without being on it.

Resolution order (first match wins):
    1. os-release ID, then each ID_LIKE token, mapped to a family whose
       package manager binary is present
    2. package manager binary presence, in PACKAGE_MANAGER_PROBES order
"""

from __future__ import annotations

import logging
import platform
import shutil
from collections.abc import Callable
from pathlib import Path

from sbprovision.core.data.platforms import (
    COMMON_CHECKS,
    DISTRO_FAMILIES,
    EFI_ARCH,
    ESP_CANDIDATES,
    FAMILIES,
    PACKAGE_MANAGER_PROBES,
)
from sbprovision.core.errors import UnsupportedPlatform
from sbprovision.core.models.platform import (
    CapabilitySpec,
    ExecutableOnPath,
    FileExistsCheck,
    PlatformProfile,
    RequiredCapability,
)
from sbprovision.core.services.mounts import PROC_MOUNTS, find_mount, read_mounts

logger = logging.getLogger(__name__)

OS_RELEASE = Path("/etc/os-release")

Which = Callable[[str], str | None]


def parse_os_release(text: str) -> dict[str, str]:
    """Parse os-release KEY=value lines, stripping shell quoting."""
    data: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        data[key.strip()] = value.strip().strip('"').strip("'")
    return data


def read_os_release(path: Path = OS_RELEASE) -> dict[str, str]:
    """Read os-release; an absent or unreadable file is an empty mapping."""
    try:
        return parse_os_release(path.read_text(encoding="utf-8"))
    except OSError:
        logger.debug("os-release not readable at %s", path)
        return {}


def _family_from_os_release(info: dict[str, str], which: Which) -> tuple[str, str] | None:
    """Return (distro_id, family) for the first usable ID / ID_LIKE token."""
    distro_id = info.get("ID", "").lower()
    tokens = [distro_id] + info.get("ID_LIKE", "").lower().split()
    for token in tokens:
        family = DISTRO_FAMILIES.get(token)
        if family is None:
            continue
        if which(FAMILIES[family]["binary"]):
            return distro_id or token, family
        logger.debug(
            "os-release token %r maps to %s but %s is not on PATH",
            token, family, FAMILIES[family]["binary"],
        )
    return None


def _family_from_binaries(which: Which) -> str | None:
    for binary, family in PACKAGE_MANAGER_PROBES:
        if which(binary):
            return family
    return None


def _expand(template: str, arch: str, machine: str, esp: str = "") -> str:
    return template.format(arch=arch, machine=machine, esp=esp.rstrip("/"))


def detect_esp(family_default: str, mounts_path: Path = PROC_MOUNTS) -> str:
    """First candidate mount point carrying a FAT filesystem, else the default."""
    entries = read_mounts(mounts_path)
    for candidate in ESP_CANDIDATES:
        entry = find_mount(candidate, entries)
        if entry is not None and entry.fstype == "vfat":
            return candidate
    logger.debug("No vfat ESP mount found, using family default %s", family_default)
    return family_default


def build_capabilities(
    family: str,
    arch: str,
    machine: str,
    validator_paths: tuple[str, ...],
    key_enrollment_paths: tuple[str, ...],
) -> dict[RequiredCapability, CapabilitySpec]:
    """Table-driven capability → (package, existence check) mapping."""
    packages = FAMILIES[family]["packages"]
    specs: dict[RequiredCapability, CapabilitySpec] = {}

    for capability in RequiredCapability:
        package = _expand(packages[capability.value], arch, machine)
        if capability is RequiredCapability.VALIDATOR:
            check = FileExistsCheck(paths=validator_paths)
        elif capability is RequiredCapability.KEY_ENROLLMENT_TOOL:
            check = FileExistsCheck(paths=key_enrollment_paths)
        else:
            rule = COMMON_CHECKS[capability.value]
            if "files" in rule:
                check = FileExistsCheck(
                    paths=tuple(_expand(p, arch, machine) for p in rule["files"])
                )
            else:
                check = ExecutableOnPath(names=tuple(rule["executables"]))
        specs[capability] = CapabilitySpec(capability=capability, package=package, check=check)

    return specs


def resolve(
    *,
    os_release: Path = OS_RELEASE,
    which: Which = shutil.which,
    machine: str | None = None,
    mounts_path: Path = PROC_MOUNTS,
    esp_override: str | None = None,
) -> PlatformProfile:
    """Resolve the host into a PlatformProfile.

    Raises:
        UnsupportedPlatform: no known package manager, or an EFI
            architecture the boot chain has no binaries for.
    """
    machine = machine or platform.machine()
    arch = EFI_ARCH.get(machine)
    if arch is None:
        raise UnsupportedPlatform(f"Unsupported machine architecture: {machine}")

    info = read_os_release(os_release)
    found = _family_from_os_release(info, which)
    if found is not None:
        distro_id, family = found
    else:
        family = _family_from_binaries(which)
        if family is None:
            raise UnsupportedPlatform(
                "No supported package manager found (tried "
                + ", ".join(b for b, _ in PACKAGE_MANAGER_PROBES) + ")"
            )
        distro_id = info.get("ID", "").lower() or family

    table = FAMILIES[family]
    esp_path = esp_override or detect_esp(table["esp_path"], mounts_path)
    validator_paths = tuple(_expand(p, arch, machine, esp_path) for p in table["validator_paths"])
    enrollment_paths = tuple(_expand(p, arch, machine, esp_path) for p in table["key_enrollment_paths"])

    profile = PlatformProfile(
        distro_id=distro_id,
        family=family,
        package_manager=table["package_manager"],
        efi_arch=arch,
        validator_paths=validator_paths,
        key_enrollment_paths=enrollment_paths,
        esp_path=esp_path,
        capabilities=build_capabilities(
            family, arch, machine, validator_paths, enrollment_paths,
        ),
    )
    logger.info(
        "Platform: %s (%s family, %s, %s), ESP at %s",
        distro_id, family, profile.package_manager, arch, esp_path,
    )
    return profile
