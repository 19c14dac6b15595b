"""
Atomic file replacement.

Writes go to a temp file in the target's directory, are fsynced, and
are renamed over the target. A crash leaves either the old file or the
new one, never a truncated mix.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def atomic_write_bytes(path: Path, data: bytes, *, mode: int | None = None) -> None:
    """Replace ``path`` with ``data``.

    Args:
        path: Target file. Its parent directory must exist.
        data: New content.
        mode: Permission bits for the new file. Defaults to the existing
            file's mode, or 0o644 for a new file.
    """
    if mode is None:
        try:
            mode = path.stat().st_mode & 0o7777
        except FileNotFoundError:
            mode = 0o644

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        tmp.chmod(mode)
        tmp.replace(path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug("Wrote %s (%d bytes)", path, len(data))


def atomic_write_text(path: Path, text: str, *, mode: int | None = None) -> None:
    """Text variant of :func:`atomic_write_bytes` (UTF-8)."""
    atomic_write_bytes(path, text.encode("utf-8"), mode=mode)
