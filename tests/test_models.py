"""
Tests for core models — state, capability reports, platform profile.
"""

import pytest
from pydantic import ValidationError

from sbprovision.core.models.artifacts import ArtifactResult, DeploymentReport
from sbprovision.core.models.config import ProvisionConfig
from sbprovision.core.models.platform import PlatformProfile, RequiredCapability
from sbprovision.core.models.state import (
    CapabilityReport,
    CapabilityResult,
    ProvisioningState,
    Stage,
)


class TestProvisioningState:
    def test_initial(self):
        state = ProvisioningState()
        assert state.stage == Stage.START
        assert state.last_completed == Stage.START
        assert not state.succeeded

    def test_advance_and_fail(self):
        state = ProvisioningState()
        state.advance(Stage.PLATFORM_RESOLVED)
        state.fail(Stage.DEPENDENCIES_SATISFIED, "DependencyUnavailable", "no sbsign")
        assert state.stage == Stage.FAILED
        assert state.last_completed == Stage.PLATFORM_RESOLVED
        assert state.failure.stage == Stage.DEPENDENCIES_SATISFIED

    def test_annotate_dedupes(self):
        state = ProvisioningState()
        state.annotate("x")
        state.annotate("x")
        assert state.annotations == ["x"]

    def test_json_round_trip(self):
        state = ProvisioningState(run_id="run-1")
        state.advance(Stage.PLATFORM_RESOLVED)
        restored = ProvisioningState.model_validate_json(state.model_dump_json())
        assert restored.completed == [Stage.PLATFORM_RESOLVED]


class TestCapabilityReport:
    def _report(self):
        return CapabilityReport(results=[
            CapabilityResult(capability=RequiredCapability.VALIDATOR, package="shim-signed", status="present"),
            CapabilityResult(capability=RequiredCapability.BOOT_ENTRY_TOOL, package="efibootmgr", status="failed"),
            CapabilityResult(
                capability=RequiredCapability.SIGNING_TOOL, package="sbsigntool",
                status="missing", optional=True,
            ),
        ])

    def test_unsatisfied_excludes_optional(self):
        assert [r.capability for r in self._report().unsatisfied] == [RequiredCapability.BOOT_ENTRY_TOOL]

    def test_is_available(self):
        report = self._report()
        assert report.is_available(RequiredCapability.VALIDATOR)
        assert not report.is_available(RequiredCapability.SIGNING_TOOL)
        assert report.status_of(RequiredCapability.CERTIFICATE_TOOL) is None

    def test_confirmed(self):
        assert self._report().confirmed == [RequiredCapability.VALIDATOR]


class TestDeploymentReport:
    def test_changed_and_missing(self):
        report = DeploymentReport(results=[
            ArtifactResult(name="validator", destination="/x", status="unchanged"),
            ArtifactResult(name="icons", destination="/y", status="skipped"),
        ])
        assert not report.changed
        assert report.missing == []
        assert report.status_of("icons") == "skipped"


class TestPlatformProfile:
    def test_derived_names(self):
        profile = PlatformProfile(distro_id="ubuntu", family="debian", package_manager="apt", efi_arch="aa64")
        assert profile.fallback_loader_name == "BOOTAA64.EFI"
        assert profile.key_enrollment_name == "mmaa64.efi"
        assert profile.boot_manager_binary_name == "refind_aa64.efi"
        assert profile.second_stage_name == "grubaa64.efi"

    def test_frozen(self):
        profile = PlatformProfile(distro_id="arch", family="arch", package_manager="pacman")
        with pytest.raises(ValidationError):
            profile.esp_path = "/efi"

    def test_unknown_package_manager(self):
        with pytest.raises(ValidationError):
            PlatformProfile(distro_id="x", family="x", package_manager="brew")


class TestProvisionConfig:
    def test_default_settings_not_shared(self):
        a, b = ProvisionConfig(), ProvisionConfig()
        a.managed_settings["timeout"] = "5"
        assert "timeout" not in b.managed_settings
