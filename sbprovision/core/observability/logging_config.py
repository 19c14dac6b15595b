"""
Logging configuration for the sbprovision CLI.

``setup_from_flags`` is called once by main.py. Modules log through
``logging.getLogger(__name__)`` and inherit whatever is set up here.

Console level precedence:
    --debug / --verbose / --quiet  >  SBP_LOG_LEVEL  >  WARNING

A persistent log is written when SBP_LOG_FILE is set, at
SBP_LOG_FILE_LEVEL (default: the console level). Every record carries
the id of the provisioning run it belongs to, so one log file can hold
many runs and still be read run by run.
"""

from __future__ import annotations

import contextlib
import contextvars
import logging
import os
import sys
from collections.abc import Iterator

LEVEL_ENV = "SBP_LOG_LEVEL"
FILE_ENV = "SBP_LOG_FILE"
FILE_LEVEL_ENV = "SBP_LOG_FILE_LEVEL"

_NO_RUN = "-"
_current_run: contextvars.ContextVar[str] = contextvars.ContextVar("sbprovision_run", default=_NO_RUN)

# (format, datefmt) by console level; anything above INFO prints bare messages.
_CONSOLE_FORMATS = {
    logging.DEBUG: ("%(asctime)s %(levelname)-7s %(run_id)s %(name)s:%(lineno)d  %(message)s", "%H:%M:%S"),
    logging.INFO: ("%(asctime)s %(message)s", "%H:%M:%S"),
}
_FILE_FORMAT = "%(asctime)s %(levelname)-7s run=%(run_id)s %(name)s  %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Below WARNING these drown out the provisioning stages.
_NOISY_LOGGERS = ("cryptography",)


class RunIdFilter(logging.Filter):
    """Stamp ``record.run_id`` with the run bound by ``bind_run``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _current_run.get()
        return True


@contextlib.contextmanager
def bind_run(run_id: str) -> Iterator[None]:
    """Attribute log records emitted inside the block to ``run_id``."""
    token = _current_run.set(run_id)
    try:
        yield
    finally:
        _current_run.reset(token)


def resolve_level(debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(LEVEL_ENV, "WARNING")


def _level_number(name: str | None, default: int = logging.WARNING) -> int:
    value = logging.getLevelName(name.upper()) if name else default
    return value if isinstance(value, int) else default


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Replace the root logger's handlers with a console and optional file handler.

    The root logger is set to the lower of the two handler levels so
    the file can be more verbose than the terminal.
    """
    console_level = _level_number(level)
    fmt, datefmt = next(
        (f for threshold, f in sorted(_CONSOLE_FORMATS.items()) if console_level <= threshold),
        ("%(message)s", None),
    )

    run_filter = RunIdFilter()
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    console.addFilter(run_filter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root_level = console_level

    if log_file:
        file_level = _level_number(log_file_level, default=console_level)
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(file_level)
        handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
        handler.addFilter(run_filter)
        root.addHandler(handler)
        root_level = min(root_level, file_level)

    root.setLevel(root_level)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def setup_from_flags(debug: bool = False, verbose: bool = False, quiet: bool = False) -> None:
    """``setup_logging`` driven by CLI flags and SBP_* env vars."""
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(FILE_ENV),
        log_file_level=os.environ.get(FILE_LEVEL_ENV),
        quiet_third_party=not debug,
    )
