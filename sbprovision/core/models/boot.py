"""
Boot entry models — firmware NVRAM records.
"""

from __future__ import annotations

from pydantic import BaseModel


def normalize_loader_path(path: str) -> str:
    r"""Canonical form for comparing loader paths.

    Firmware reports ``\EFI\refind\shimx64.efi``; operators often write
    ``/EFI/refind/shimx64.efi``. FAT is case-insensitive, so are we.
    """
    unified = path.strip().replace("/", "\\")
    if not unified.startswith("\\"):
        unified = "\\" + unified
    return unified.lower()


class BootEntry(BaseModel):
    """The NVRAM entry the engine wants to exist."""

    label: str
    loader_path: str
    device: str = ""
    partition: int | None = None

    def matches(self, other: FirmwareBootEntry) -> bool:
        """Same label and same loader path means already registered."""
        return (
            self.label == other.label
            and other.loader_path is not None
            and normalize_loader_path(self.loader_path)
            == normalize_loader_path(other.loader_path)
        )


class FirmwareBootEntry(BaseModel):
    """An entry as listed by the firmware."""

    number: str
    label: str
    loader_path: str | None = None
    active: bool = False
