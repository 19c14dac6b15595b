"""
Error taxonomy for the provisioning engine.

Every stage either completes or raises exactly one of these. The engine
records the kind and message on the run state and stops; it does not
catch-and-rewrap. Conditions that do not block forward progress (a
missing signing target, an unreadable Secure Boot variable) are not
errors and never appear here.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class ProvisioningError(Exception):
    """Base class. ``kind`` is the stable, user-visible error name."""

    kind = "ProvisioningError"


class UnsupportedPlatform(ProvisioningError):
    """No known package manager / EFI architecture for this host."""

    kind = "UnsupportedPlatform"


class DependencyUnavailable(ProvisioningError):
    """One or more required capabilities are still missing after install."""

    kind = "DependencyUnavailable"

    def __init__(self, capabilities: Iterable[str], report: Any = None):
        self.capabilities = sorted(capabilities)
        self.report = report
        super().__init__(
            "Required capabilities unavailable: " + ", ".join(self.capabilities)
        )


class CorruptKeyState(ProvisioningError):
    """Exactly one half of the signing key pair exists."""

    kind = "CorruptKeyState"


class SigningToolUnavailable(ProvisioningError):
    """Signing is mandatory but cannot be performed."""

    kind = "SigningToolUnavailable"


class ArtifactMissing(ProvisioningError):
    """Source files for required ESP artifacts could not be located."""

    kind = "ArtifactMissing"

    def __init__(self, names: Iterable[str]):
        self.names = list(names)
        super().__init__("Artifact source missing: " + ", ".join(self.names))


class EntryCreationFailed(ProvisioningError):
    """The firmware boot entry could not be listed or created."""

    kind = "EntryCreationFailed"


class AlreadyRunning(ProvisioningError):
    """Another provisioning run holds the process lock."""

    kind = "AlreadyRunning"


class ConfigWriteFailed(ProvisioningError):
    """The boot manager configuration could not be written."""

    kind = "ConfigWriteFailed"


class ProvisioningCancelled(ProvisioningError):
    """The operator interrupted the run between stages."""

    kind = "Cancelled"


class KeyGenerationFailed(ProvisioningError):
    """The certificate tool did not produce a usable key pair."""

    kind = "KeyGenerationFailed"


class ESPWriteFailed(ProvisioningError):
    """An artifact could not be copied onto the ESP."""

    kind = "ESPWriteFailed"


class LockUnavailable(ProvisioningError):
    """The process lock file could not be created or opened."""

    kind = "LockUnavailable"
