"""
Boot entry manager — make sure firmware has an NVRAM entry for shim.

An entry with the same label and loader path counts as already there.
Otherwise one is created on the disk and partition that back the ESP,
looked up in the live mount table. Existing entries are never deleted
and BootOrder is never changed.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from sbprovision.adapters.registry import AdapterRegistry
from sbprovision.core.errors import EntryCreationFailed
from sbprovision.core.models.action import Action
from sbprovision.core.models.boot import BootEntry, FirmwareBootEntry
from sbprovision.core.models.state import BootEntryOutcome
from sbprovision.core.services.mounts import PROC_MOUNTS, find_mount, read_mounts, split_partition

logger = logging.getLogger(__name__)

_BOOT_LINE_RE = re.compile(r"^Boot([0-9A-Fa-f]{4})(\*)?\s+(.*)$")
# Where the device path starts when efibootmgr does not separate it with a tab.
_DEVICE_PATH_RE = re.compile(r"\s+(?=(?:HD|PciRoot|VenHw|VenMsg|BBS|FvVol|MAC|Uri)\()")
_FILE_RE = re.compile(r"File\((?P<path>[^)]+)\)", re.IGNORECASE)
_BARE_RE = re.compile(r"(?P<path>\\[^\s]*?\.efi)", re.IGNORECASE)


def _split_label(rest: str) -> tuple[str, str]:
    if "\t" in rest:
        label, path = rest.split("\t", 1)
        return label.strip(), path.strip()
    parts = _DEVICE_PATH_RE.split(rest, maxsplit=1)
    if len(parts) == 2:
        return parts[0].strip(), parts[1].strip()
    return rest.strip(), ""


def _loader_from(device_path: str) -> str | None:
    m = _FILE_RE.search(device_path) or _BARE_RE.search(device_path)
    return m.group("path") if m else None


def parse_efibootmgr_output(text: str) -> list[FirmwareBootEntry]:
    r"""Parse ``efibootmgr -v`` output.

    Handles both the ``HD(...)/File(\EFI\...)`` form and the newer
    ``HD(...)/\EFI\...`` form. Non-entry lines (BootCurrent, BootOrder,
    ``dp:`` dumps) are ignored.
    """
    entries: list[FirmwareBootEntry] = []
    for line in text.splitlines():
        m = _BOOT_LINE_RE.match(line.strip())
        if not m:
            continue
        label, device_path = _split_label(m.group(3))
        entries.append(FirmwareBootEntry(
            number=m.group(1).upper(),
            label=label,
            loader_path=_loader_from(device_path),
            active=m.group(2) == "*",
        ))
    return entries


def list_entries(registry: AdapterRegistry) -> list[FirmwareBootEntry]:
    """Current firmware boot entries.

    Raises:
        EntryCreationFailed: the entries could not be listed.
    """
    receipt = registry.execute_action(Action(
        id="bootentry:list",
        adapter="efibootmgr",
        operation="list",
    ))
    if not receipt.ok:
        raise EntryCreationFailed(f"Cannot list firmware boot entries: {receipt.explain()}")
    return parse_efibootmgr_output(receipt.output)


def resolve_esp_device(esp_path: str, mounts_path: Path = PROC_MOUNTS) -> tuple[str, int]:
    """Disk and partition number backing the ESP mount.

    Raises:
        EntryCreationFailed: the ESP is not a mounted partition.
    """
    entry = find_mount(esp_path, read_mounts(mounts_path))
    if entry is None:
        raise EntryCreationFailed(f"{esp_path} is not a mount point")

    source = entry.source
    if os.path.islink(source):
        source = os.path.realpath(source)

    split = split_partition(source) if source.startswith("/dev/") else None
    if split is None:
        raise EntryCreationFailed(
            f"Cannot determine disk and partition for {esp_path} (mounted from {entry.source})"
        )
    return split


def ensure(
    entry: BootEntry,
    registry: AdapterRegistry,
    *,
    esp_path: str = "/boot/efi",
    mounts_path: Path = PROC_MOUNTS,
) -> BootEntryOutcome:
    """Report the entry as present, or create it.

    Raises:
        EntryCreationFailed: listing, device resolution or creation failed,
            or the entry is still absent after creation.
    """
    existing = list_entries(registry)
    for fw in existing:
        if entry.matches(fw):
            logger.info("Boot entry %s (Boot%s) already present", entry.label, fw.number)
            return BootEntryOutcome(
                status="present",
                label=entry.label,
                loader_path=entry.loader_path,
                device=entry.device,
                partition=entry.partition,
            )

    if entry.device and entry.partition is not None:
        device, partition = entry.device, entry.partition
    else:
        device, partition = resolve_esp_device(esp_path, mounts_path)

    logger.info(
        "Creating boot entry %r → %s on %s partition %d",
        entry.label, entry.loader_path, device, partition,
    )
    receipt = registry.execute_action(Action(
        id="bootentry:create",
        adapter="efibootmgr",
        operation="create",
        params={
            "device": device,
            "partition": partition,
            "label": entry.label,
            "loader": entry.loader_path,
        },
    ))
    if not receipt.ok:
        raise EntryCreationFailed(f"efibootmgr could not create {entry.label!r}: {receipt.explain()}")

    if not any(entry.matches(fw) for fw in list_entries(registry)):
        raise EntryCreationFailed(
            f"Boot entry {entry.label!r} not listed by firmware after creation"
        )

    return BootEntryOutcome(
        status="created",
        label=entry.label,
        loader_path=entry.loader_path,
        device=device,
        partition=partition,
    )
