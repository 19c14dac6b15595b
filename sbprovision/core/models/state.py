"""
ProvisioningState — the record threaded through every engine stage.

Built fresh at the start of each run and advanced stage by stage. It is
never saved: a re-run reconstructs everything by probing the filesystem
and firmware again, so the on-disk artifacts are the only durable state.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from sbprovision.core.models.artifacts import DeploymentReport, ESPArtifactSet
from sbprovision.core.models.keys import CertificateInfo, KeyPair
from sbprovision.core.models.plan import EnrollmentPlan
from sbprovision.core.models.platform import PlatformProfile, RequiredCapability


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Stage(str, Enum):
    """Engine states, in order. FAILED is terminal."""

    START = "Start"
    PLATFORM_RESOLVED = "PlatformResolved"
    DEPENDENCIES_SATISFIED = "DependenciesSatisfied"
    KEYS_READY = "KeysReady"
    ARTIFACTS_DEPLOYED = "ArtifactsDeployed"
    BINARY_SIGNED = "BinarySigned"
    CONFIG_UPDATED = "ConfigUpdated"
    BOOT_ENTRY_READY = "BootEntryReady"
    ADVISED = "Advised"
    FAILED = "Failed"


class SecureBootStatus(str, Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"
    INDETERMINATE = "indeterminate"


class ProbeReading(BaseModel):
    """One read of the firmware Secure Boot variables."""

    status: SecureBootStatus
    setup_mode: bool | None = None
    source: str = ""
    detail: str = ""
    read_at: str = Field(default_factory=_now_iso)


CapabilityStatus = Literal["present", "installed", "missing", "failed"]


class CapabilityResult(BaseModel):
    capability: RequiredCapability
    package: str
    status: CapabilityStatus
    optional: bool = False
    detail: str = ""


class CapabilityReport(BaseModel):
    """Per-capability outcome of one dependency pass."""

    results: list[CapabilityResult] = Field(default_factory=list)

    def status_of(self, capability: RequiredCapability) -> CapabilityStatus | None:
        for r in self.results:
            if r.capability == capability:
                return r.status
        return None

    def is_available(self, capability: RequiredCapability) -> bool:
        return self.status_of(capability) in ("present", "installed")

    @property
    def unsatisfied(self) -> list[CapabilityResult]:
        """Required capabilities that are still not available."""
        return [
            r for r in self.results
            if not r.optional and r.status in ("missing", "failed")
        ]

    @property
    def confirmed(self) -> list[RequiredCapability]:
        return [r.capability for r in self.results if r.status in ("present", "installed")]


class SigningOutcome(BaseModel):
    status: Literal["signed", "already_signed", "skipped"]
    binary: str
    reason: str = ""


class ConfigMutation(BaseModel):
    path: str
    changed: bool = False
    created: bool = False
    backup_path: str | None = None
    keys_written: list[str] = Field(default_factory=list)
    blocks_added: list[str] = Field(default_factory=list)
    blocks_preserved: list[str] = Field(default_factory=list)


class BootEntryOutcome(BaseModel):
    status: Literal["present", "created"]
    label: str
    loader_path: str
    device: str = ""
    partition: int | None = None


class StageFailure(BaseModel):
    stage: Stage
    kind: str
    message: str


class ProvisioningState(BaseModel):
    """Aggregate run state.

    Each field is owned by exactly one stage; later stages only read
    what earlier stages produced.
    """

    run_id: str = ""
    started_at: str = Field(default_factory=_now_iso)

    stage: Stage = Stage.START
    completed: list[Stage] = Field(default_factory=list)
    failure: StageFailure | None = None
    short_circuited: bool = False

    profile: PlatformProfile | None = None
    capabilities: CapabilityReport | None = None
    keypair: KeyPair | None = None
    certificate: CertificateInfo | None = None
    artifact_set: ESPArtifactSet | None = None
    deployment: DeploymentReport | None = None
    signing: SigningOutcome | None = None
    signatures: list[SigningOutcome] = Field(default_factory=list)
    config: ConfigMutation | None = None
    boot_entry: BootEntryOutcome | None = None

    initial_probe: ProbeReading | None = None
    last_probe: ProbeReading | None = None
    plan: EnrollmentPlan | None = None

    annotations: list[str] = Field(default_factory=list)

    @property
    def last_completed(self) -> Stage:
        return self.completed[-1] if self.completed else Stage.START

    @property
    def succeeded(self) -> bool:
        return self.stage == Stage.ADVISED

    def advance(self, stage: Stage) -> None:
        """Record that ``stage`` has been reached."""
        self.stage = stage
        self.completed.append(stage)

    def fail(self, stage: Stage, kind: str, message: str) -> None:
        """Move to the terminal failed state."""
        self.failure = StageFailure(stage=stage, kind=kind, message=message)
        self.stage = Stage.FAILED

    def annotate(self, note: str) -> None:
        """Attach a success-with-annotation remark (never an error)."""
        if note not in self.annotations:
            self.annotations.append(note)
