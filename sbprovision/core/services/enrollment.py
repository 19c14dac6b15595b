"""
Enrollment advisor — what the operator still has to do by hand.

``advise`` is a pure function of the final run state: same state in,
same plan out. ``write_plan`` persists the plan as JSON so it survives
the reboot the plan asks for.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path, PurePosixPath

from sbprovision.core.models.plan import EnrollmentPlan, EnrollmentStep
from sbprovision.core.models.state import ProvisioningState, SecureBootStatus
from sbprovision.core.persistence.atomic import atomic_write_text

logger = logging.getLogger(__name__)


def _firmware_path(path: str, esp_path: str) -> str:
    r"""``/boot/efi/EFI/refind/x.cer`` → ``\EFI\refind\x.cer``."""
    try:
        rel = PurePosixPath(path).relative_to(PurePosixPath(esp_path))
    except ValueError:
        return path
    return "\\" + "\\".join(rel.parts)


def _certificate_on_esp(state: ProvisioningState) -> str | None:
    if state.artifact_set is None or state.deployment is None:
        return None
    if state.deployment.status_of("certificate") not in ("copied", "unchanged"):
        return None
    for artifact in state.artifact_set.artifacts:
        if artifact.name == "certificate":
            return _firmware_path(artifact.destination, state.artifact_set.esp_path)
    return None


def advise(state: ProvisioningState) -> EnrollmentPlan:
    """Build the ordered list of remaining manual steps."""
    reading = state.last_probe or state.initial_probe
    status = reading.status if reading else SecureBootStatus.INDETERMINATE

    plan = EnrollmentPlan(secure_boot=status.value)
    if state.short_circuited:
        plan.notes.append("Secure Boot is already enabled; no provisioning was performed.")
        return plan

    keypair = state.keypair
    if keypair is not None:
        plan.certificate_path = str(keypair.certificate_der or keypair.certificate)
    if state.certificate is not None:
        plan.certificate_fingerprint = state.certificate.fingerprint_sha256
    plan.certificate_esp_path = _certificate_on_esp(state)

    label = state.boot_entry.label if state.boot_entry else "rEFInd Shim"
    steps: list[tuple[str, str]] = [
        ("Reboot and enter the firmware setup",
         "Usually F2, F10, F12 or Del during power-on."),
    ]
    if status != SecureBootStatus.ENABLED:
        steps.append(("Enable Secure Boot", "Save the firmware settings and reboot."))
    steps.append((
        f"Boot the '{label}' entry",
        "Pick it from the firmware boot menu or move it to the top of the boot order.",
    ))

    if keypair is not None and keypair.created_this_run:
        where = plan.certificate_esp_path or plan.certificate_path
        detail = f"In MokManager choose 'Enroll key from disk' and select {where}."
        if plan.certificate_fingerprint:
            detail += f" Confirm the SHA-256 fingerprint {plan.certificate_fingerprint}."
        steps.append(("Enroll the generated certificate", detail))
        steps.append(("Reboot after enrollment", "MokManager applies the new key on the next boot."))
    elif keypair is not None:
        plan.notes.append(
            f"Reused existing key pair; if {plan.certificate_path} is not yet enrolled, "
            "enroll it from MokManager."
        )

    steps.append(("Confirm Secure Boot is active", "Run 'sbprovision probe' once booted."))
    plan.steps = [EnrollmentStep(order=i, action=a, detail=d) for i, (a, d) in enumerate(steps, 1)]

    if status == SecureBootStatus.INDETERMINATE:
        detail = f" ({reading.detail})" if reading and reading.detail else ""
        plan.notes.append(f"Secure Boot state could not be determined{detail}.")
    for note in state.annotations:
        if note not in plan.notes:
            plan.notes.append(note)

    return plan


def write_plan(plan: EnrollmentPlan, path: Path) -> Path:
    """Persist ``plan`` as JSON at ``path`` (atomic)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(plan.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"
    atomic_write_text(path, content)
    logger.info("Enrollment instructions written to %s", path)
    return path
