"""
Probe use case — report Secure Boot state without changing anything.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from sbprovision.core.models.state import ProbeReading, SecureBootStatus
from sbprovision.core.services import state_probe


@dataclass
class ProbeResult:
    """Result of a Secure Boot probe."""

    reading: ProbeReading

    @property
    def enabled(self) -> bool:
        return self.reading.status == SecureBootStatus.ENABLED

    def to_dict(self) -> dict:
        return {
            "secure_boot": self.reading.status.value,
            "setup_mode": self.reading.setup_mode,
            "source": self.reading.source,
            "detail": self.reading.detail,
            "read_at": self.reading.read_at,
        }


def run_probe(efi_dir: Path = state_probe.EFI_DIR) -> ProbeResult:
    """Read the firmware Secure Boot state."""
    return ProbeResult(reading=state_probe.read(efi_dir))
