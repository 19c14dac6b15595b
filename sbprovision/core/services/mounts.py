"""
Mount table probes — read-only.

Both the distro resolver (where is the ESP mounted?) and the boot
entry manager (which disk and partition back it?) need the live mount
table. Parsing lives here once.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

PROC_MOUNTS = Path("/proc/self/mounts")

# /dev/nvme0n1p1, /dev/mmcblk0p1, /dev/loop0p1 → "p" separator
# /dev/sda1, /dev/vda2, /dev/xvda1              → digits directly
_PART_RE = re.compile(r"^(?P<disk>.*?\d)p(?P<num>\d+)$|^(?P<plain>.*?\D)(?P<pnum>\d+)$")


@dataclass(frozen=True)
class MountEntry:
    source: str
    target: str
    fstype: str


def _unescape(field: str) -> str:
    """Undo the octal escapes /proc/mounts uses for spaces and tabs."""
    return re.sub(r"\\([0-7]{3})", lambda m: chr(int(m.group(1), 8)), field)


def read_mounts(path: Path = PROC_MOUNTS) -> list[MountEntry]:
    """Parse a mounts file. Missing or unreadable → empty list."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return []

    entries: list[MountEntry] = []
    for line in text.splitlines():
        fields = line.split()
        if len(fields) < 3:
            continue
        entries.append(
            MountEntry(
                source=_unescape(fields[0]),
                target=_unescape(fields[1]),
                fstype=fields[2],
            )
        )
    return entries


def find_mount(mountpoint: str, entries: list[MountEntry]) -> MountEntry | None:
    """Last entry mounted exactly at ``mountpoint`` (later mounts shadow earlier)."""
    wanted = os.path.normpath(mountpoint)
    match = None
    for entry in entries:
        if os.path.normpath(entry.target) == wanted:
            match = entry
    return match


def split_partition(device: str) -> tuple[str, int] | None:
    """Split a partition device node into (disk, partition number).

    >>> split_partition("/dev/nvme0n1p1")
    ('/dev/nvme0n1', 1)
    >>> split_partition("/dev/sda2")
    ('/dev/sda', 2)
    """
    m = _PART_RE.match(device)
    if not m:
        return None
    if m.group("disk"):
        return m.group("disk"), int(m.group("num"))
    return m.group("plain"), int(m.group("pnum"))
