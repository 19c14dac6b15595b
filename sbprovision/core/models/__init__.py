"""
Domain models — Pydantic types for the provisioning engine.

All models are re-exported here for convenient access:

    from sbprovision.core.models import PlatformProfile, KeyPair, ProvisioningState
"""

from sbprovision.core.models.action import Action, Receipt
from sbprovision.core.models.artifacts import (
    ArtifactResult,
    DeploymentReport,
    ESPArtifact,
    ESPArtifactSet,
)
from sbprovision.core.models.boot import BootEntry, FirmwareBootEntry
from sbprovision.core.models.config import ProvisionConfig
from sbprovision.core.models.keys import CertificateInfo, KeyPair
from sbprovision.core.models.plan import EnrollmentPlan, EnrollmentStep
from sbprovision.core.models.platform import (
    CapabilitySpec,
    ExecutableOnPath,
    FileExistsCheck,
    PlatformProfile,
    RequiredCapability,
)
from sbprovision.core.models.state import (
    CapabilityReport,
    CapabilityResult,
    ProbeReading,
    ProvisioningState,
    SecureBootStatus,
    Stage,
)

__all__ = [
    # action.py
    "Action",
    "Receipt",
    # artifacts.py
    "ArtifactResult",
    "DeploymentReport",
    "ESPArtifact",
    "ESPArtifactSet",
    # boot.py
    "BootEntry",
    "FirmwareBootEntry",
    # config.py
    "ProvisionConfig",
    # keys.py
    "CertificateInfo",
    "KeyPair",
    # plan.py
    "EnrollmentPlan",
    "EnrollmentStep",
    # platform.py
    "CapabilitySpec",
    "ExecutableOnPath",
    "FileExistsCheck",
    "PlatformProfile",
    "RequiredCapability",
    # state.py
    "CapabilityReport",
    "CapabilityResult",
    "ProbeReading",
    "ProvisioningState",
    "SecureBootStatus",
    "Stage",
]
