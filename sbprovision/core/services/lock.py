"""
Process lock — one provisioning run per host.

A non-blocking exclusive ``flock`` on a well-known file. The kernel
drops the lock when the process exits, so a crashed run never leaves
a stale lock behind.
"""

from __future__ import annotations

import contextlib
import errno
import fcntl
import logging
import os
from collections.abc import Iterator
from pathlib import Path

from sbprovision.core.errors import AlreadyRunning, LockUnavailable

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def process_lock(path: Path) -> Iterator[Path]:
    """Hold an exclusive lock on ``path`` for the duration of the block.

    Raises:
        AlreadyRunning: another process holds the lock.
        LockUnavailable: the lock file cannot be created, opened or locked.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_CREAT | os.O_RDWR | os.O_CLOEXEC, 0o600)
    except OSError as e:
        raise LockUnavailable(f"Cannot open lock file {path}: {e}") from e
    try:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            os.ftruncate(fd, 0)
            os.write(fd, f"{os.getpid()}\n".encode())
        except OSError as e:
            if e.errno in (errno.EWOULDBLOCK, errno.EAGAIN):
                raise AlreadyRunning(
                    f"Another provisioning run holds {path}; wait for it to finish"
                ) from e
            raise LockUnavailable(f"Cannot lock {path}: {e}") from e
        logger.debug("Acquired lock %s", path)
        try:
            yield path
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            logger.debug("Released lock %s", path)
    finally:
        os.close(fd)
