"""
State probe — read the firmware's Secure Boot state.

efivarfs exposes each variable as 4 attribute bytes followed by the
value; the legacy sysfs interface exposes the value alone in a
``data`` file. A value byte of 1 means enabled. Anything that cannot be
read is ``indeterminate``, never an error: the engine still provisions
so the chain is ready once Secure Boot is switched on.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sbprovision.core.models.state import ProbeReading, SecureBootStatus

logger = logging.getLogger(__name__)

GLOBAL_VARIABLE_GUID = "8be4df61-93ca-11d2-aa0d-00e098032b8c"
EFI_DIR = Path("/sys/firmware/efi")


def _read_variable(name: str, efi_dir: Path) -> tuple[int | None, str]:
    """(value byte or None, source path) for a global EFI variable."""
    efivar = efi_dir / "efivars" / f"{name}-{GLOBAL_VARIABLE_GUID}"
    legacy = efi_dir / "vars" / f"{name}-{GLOBAL_VARIABLE_GUID}" / "data"

    for path, offset in ((efivar, 4), (legacy, 0)):
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.debug("Cannot read %s: %s", path, e)
            return None, str(path)
        if len(data) <= offset:
            logger.debug("Short read from %s (%d bytes)", path, len(data))
            return None, str(path)
        return data[offset], str(path)

    return None, ""


def read(efi_dir: Path = EFI_DIR) -> ProbeReading:
    """Read SecureBoot (and SetupMode when available)."""
    if not efi_dir.is_dir():
        logger.info("No %s: not booted in UEFI mode", efi_dir)
        return ProbeReading(
            status=SecureBootStatus.INDETERMINATE,
            detail="system not booted in UEFI mode",
        )

    value, source = _read_variable("SecureBoot", efi_dir)
    setup, _ = _read_variable("SetupMode", efi_dir)
    setup_mode = None if setup is None else setup == 1

    if value is None:
        detail = f"cannot read {source}" if source else "SecureBoot variable not present"
        logger.info("Secure Boot state indeterminate: %s", detail)
        return ProbeReading(
            status=SecureBootStatus.INDETERMINATE,
            setup_mode=setup_mode,
            source=source,
            detail=detail,
        )

    status = SecureBootStatus.ENABLED if value == 1 else SecureBootStatus.DISABLED
    logger.info("Secure Boot %s (from %s)", status.value, source)
    return ProbeReading(status=status, setup_mode=setup_mode, source=source)
