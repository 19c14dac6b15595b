"""
ESP deployer — put the validator, the key-enrollment tool and the
boot manager's resources onto the EFI System Partition.

Firmware falls back to ``EFI/BOOT/BOOT<ARCH>.EFI`` when no NVRAM entry
works; the boot manager expects the same binaries in its own directory.
Both locations get both binaries.

shim chain-loads ``grub<arch>.efi`` from its own directory, so the
rEFInd binary is placed there under that name as well as under its own.
These copies are signed in place afterwards and are only seeded: an
existing copy on the ESP is never overwritten from the package.

All sources are checked before anything is copied. A set with missing
required sources fails as a whole, naming every missing artifact.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sbprovision.adapters.registry import AdapterRegistry
from sbprovision.core.data.platforms import BOOT_MANAGER_SOURCE, ICON_SOURCE
from sbprovision.core.errors import ArtifactMissing, ESPWriteFailed
from sbprovision.core.models.action import Action
from sbprovision.core.models.artifacts import (
    ArtifactResult,
    DeploymentReport,
    ESPArtifact,
    ESPArtifactSet,
)
from sbprovision.core.models.keys import KeyPair
from sbprovision.core.models.platform import PlatformProfile

logger = logging.getLogger(__name__)

FALLBACK_DIR = "EFI/BOOT"


def first_existing(paths: tuple[str, ...] | list[str]) -> str | None:
    """First path in ``paths`` that is a file, else None."""
    for path in paths:
        if Path(path).is_file():
            return path
    return None


def _source(paths: tuple[str, ...]) -> str:
    # Report the preferred location when nothing exists.
    return first_existing(paths) or (paths[0] if paths else "")


def boot_manager_path(profile: PlatformProfile, boot_manager_dir: str = "EFI/refind") -> Path:
    """Where the boot manager binary lives on the ESP."""
    return Path(profile.esp_path) / boot_manager_dir / profile.boot_manager_binary_name


def signing_targets(profile: PlatformProfile, boot_manager_dir: str = "EFI/refind") -> list[Path]:
    """Every rEFInd copy on the ESP that must carry the local signature."""
    esp = Path(profile.esp_path)
    return [
        boot_manager_path(profile, boot_manager_dir),
        esp / boot_manager_dir / profile.second_stage_name,
        esp / FALLBACK_DIR / profile.second_stage_name,
    ]


def build_artifact_set(
    profile: PlatformProfile,
    keypair: KeyPair | None = None,
    *,
    boot_manager_dir: str = "EFI/refind",
) -> ESPArtifactSet:
    """Everything that must be on the ESP for this platform."""
    esp = Path(profile.esp_path)
    fallback = esp / FALLBACK_DIR
    manager = esp / boot_manager_dir
    validator = _source(profile.validator_paths)
    enrollment = _source(profile.key_enrollment_paths)
    refind = BOOT_MANAGER_SOURCE.format(
        boot_manager_dir=profile.boot_manager_dir, arch=profile.efi_arch,
    )

    artifacts = [
        ESPArtifact(
            name="validator-fallback",
            source=validator,
            destination=str(fallback / profile.fallback_loader_name),
        ),
        ESPArtifact(
            name="validator",
            source=validator,
            destination=str(manager / profile.validator_name),
        ),
        ESPArtifact(
            name="key-enrollment-fallback",
            source=enrollment,
            destination=str(fallback / profile.key_enrollment_name),
        ),
        ESPArtifact(
            name="key-enrollment",
            source=enrollment,
            destination=str(manager / profile.key_enrollment_name),
        ),
        ESPArtifact(
            name="boot-manager",
            source=refind,
            destination=str(manager / profile.boot_manager_binary_name),
            replace=False,
        ),
        ESPArtifact(
            name="second-stage",
            source=refind,
            destination=str(manager / profile.second_stage_name),
            replace=False,
        ),
        ESPArtifact(
            name="second-stage-fallback",
            source=refind,
            destination=str(fallback / profile.second_stage_name),
            replace=False,
        ),
        ESPArtifact(
            name="icons",
            source=ICON_SOURCE.format(boot_manager_dir=profile.boot_manager_dir),
            destination=str(manager / "icons"),
            kind="tree",
            required=False,
        ),
    ]

    if keypair is not None and keypair.certificate_der is not None:
        artifacts.append(ESPArtifact(
            name="certificate",
            source=str(keypair.certificate_der),
            destination=str(manager / "keys" / keypair.certificate_der.name),
        ))

    return ESPArtifactSet(esp_path=profile.esp_path, artifacts=artifacts)


def _source_exists(artifact: ESPArtifact) -> bool:
    path = Path(artifact.source)
    return path.is_dir() if artifact.kind == "tree" else path.is_file()


def deploy(artifact_set: ESPArtifactSet, registry: AdapterRegistry) -> DeploymentReport:
    """Copy every artifact whose source exists.

    Raises:
        ArtifactMissing: one or more required sources do not exist.
            Nothing is copied in that case.
        ESPWriteFailed: a copy onto the ESP failed.
    """
    missing = [
        a.name for a in artifact_set.artifacts
        if a.required and not _source_exists(a)
    ]
    if missing:
        for name in missing:
            logger.error("Artifact source missing: %s", name)
        raise ArtifactMissing(missing)

    report = DeploymentReport()
    for artifact in artifact_set.artifacts:
        if not _source_exists(artifact):
            logger.warning("Optional artifact %s skipped: %s not found", artifact.name, artifact.source)
            report.results.append(ArtifactResult(
                name=artifact.name,
                destination=artifact.destination,
                status="skipped",
                detail=f"{artifact.source} not found",
            ))
            continue

        receipt = registry.execute_action(Action(
            id=f"esp:{artifact.name}",
            adapter="filesystem",
            operation="copytree" if artifact.kind == "tree" else "copy",
            params={
                "source": artifact.source,
                "path": artifact.destination,
                "replace": artifact.replace,
            },
        ))
        if not receipt.ok:
            raise ESPWriteFailed(f"Copying {artifact.name} to {artifact.destination} failed: {receipt.explain()}")

        changed = bool(receipt.metadata.get("changed", True))
        report.results.append(ArtifactResult(
            name=artifact.name,
            destination=artifact.destination,
            status="copied" if changed else "unchanged",
        ))
        logger.info("%s %s → %s", "Copied" if changed else "Unchanged", artifact.name, artifact.destination)

    return report
