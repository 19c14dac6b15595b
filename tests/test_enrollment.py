"""
Tests for the enrollment advisor.
"""

import json
from pathlib import Path

from sbprovision.core.models.artifacts import ArtifactResult, DeploymentReport, ESPArtifact, ESPArtifactSet
from sbprovision.core.models.keys import CertificateInfo, KeyPair
from sbprovision.core.models.state import (
    BootEntryOutcome,
    ProbeReading,
    ProvisioningState,
    SecureBootStatus,
)
from sbprovision.core.services.enrollment import advise, write_plan


def _state(status=SecureBootStatus.DISABLED, created=True, **extra) -> ProvisioningState:
    cert = CertificateInfo(
        subject="CN=Test",
        serial="1F",
        fingerprint_sha256="AB:CD",
        not_before="2026-01-01T00:00:00+00:00",
        not_after="2036-01-01T00:00:00+00:00",
    )
    state = ProvisioningState(
        initial_probe=ProbeReading(status=status),
        keypair=KeyPair(
            private_key=Path("/etc/refind.d/keys/refind_local.key"),
            certificate=Path("/etc/refind.d/keys/refind_local.crt"),
            certificate_der=Path("/etc/refind.d/keys/refind_local.cer"),
            created_this_run=created,
        ),
        certificate=cert,
        artifact_set=ESPArtifactSet(
            esp_path="/boot/efi",
            artifacts=[ESPArtifact(
                name="certificate",
                source="/etc/refind.d/keys/refind_local.cer",
                destination="/boot/efi/EFI/refind/keys/refind_local.cer",
            )],
        ),
        deployment=DeploymentReport(results=[ArtifactResult(
            name="certificate",
            destination="/boot/efi/EFI/refind/keys/refind_local.cer",
            status="copied",
        )]),
        boot_entry=BootEntryOutcome(status="created", label="rEFInd Shim", loader_path=r"\EFI\refind\shimx64.efi"),
    )
    for key, value in extra.items():
        setattr(state, key, value)
    return state


def _actions(plan) -> list[str]:
    return [s.action for s in plan.steps]


class TestAdvise:
    def test_fresh_keys_disabled(self):
        plan = advise(_state())
        assert _actions(plan) == [
            "Reboot and enter the firmware setup",
            "Enable Secure Boot",
            "Boot the 'rEFInd Shim' entry",
            "Enroll the generated certificate",
            "Reboot after enrollment",
            "Confirm Secure Boot is active",
        ]
        assert [s.order for s in plan.steps] == [1, 2, 3, 4, 5, 6]

    def test_enroll_step_names_esp_path_and_fingerprint(self):
        plan = advise(_state())
        enroll = next(s for s in plan.steps if s.action.startswith("Enroll"))
        assert r"\EFI\refind\keys\refind_local.cer" in enroll.detail
        assert "AB:CD" in enroll.detail
        assert plan.certificate_path == "/etc/refind.d/keys/refind_local.cer"

    def test_enabled_skips_enable_step(self):
        assert "Enable Secure Boot" not in _actions(advise(_state(SecureBootStatus.ENABLED)))

    def test_reused_keys(self):
        plan = advise(_state(created=False))
        assert "Enroll the generated certificate" not in _actions(plan)
        assert any("Reused existing key pair" in n for n in plan.notes)

    def test_certificate_not_on_esp(self):
        plan = advise(_state(deployment=DeploymentReport()))
        assert plan.certificate_esp_path is None
        enroll = next(s for s in plan.steps if s.action.startswith("Enroll"))
        assert "/etc/refind.d/keys/refind_local.cer" in enroll.detail

    def test_indeterminate_note(self):
        state = _state(SecureBootStatus.INDETERMINATE)
        state.initial_probe = ProbeReading(status=SecureBootStatus.INDETERMINATE, detail="no efivars")
        plan = advise(state)
        assert plan.secure_boot == "indeterminate"
        assert "Secure Boot state could not be determined (no efivars)." in plan.notes
        assert "Enable Secure Boot" in _actions(plan)

    def test_last_probe_preferred(self):
        state = _state(last_probe=ProbeReading(status=SecureBootStatus.ENABLED))
        assert advise(state).secure_boot == "enabled"

    def test_annotations_become_notes(self):
        state = _state()
        state.annotate("Signing skipped: sbsign is not installed")
        assert "Signing skipped: sbsign is not installed" in advise(state).notes

    def test_short_circuit(self):
        state = ProvisioningState(
            initial_probe=ProbeReading(status=SecureBootStatus.ENABLED), short_circuited=True,
        )
        plan = advise(state)
        assert plan.complete
        assert plan.notes == ["Secure Boot is already enabled; no provisioning was performed."]

    def test_deterministic(self):
        state = _state()
        assert advise(state) == advise(state)


class TestWritePlan:
    def test_json(self, tmp_path: Path):
        path = write_plan(advise(_state()), tmp_path / "sub/plan.json")
        data = json.loads(path.read_text())
        assert data["secure_boot"] == "disabled"
        assert data["certificate_fingerprint"] == "AB:CD"
        assert len(data["steps"]) == 6
