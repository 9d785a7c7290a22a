"""
Logging setup shared by the CLI and the web server.

Called once when the ``aggregator`` command starts. Every module that
does ``logger = logging.getLogger(__name__)`` inherits this config.

Level precedence:
    CLI flag  >  AGG_LOG_LEVEL env var  >  WARNING

An extra file handler is added when AGG_LOG_FILE is set; its level comes
from AGG_LOG_FILE_LEVEL (defaults to the console level).
"""

from __future__ import annotations

import logging
import os
import sys

LOG_LEVEL_ENV = "AGG_LOG_LEVEL"
LOG_FILE_ENV = "AGG_LOG_FILE"
LOG_FILE_LEVEL_ENV = "AGG_LOG_FILE_LEVEL"

# ── Formats ─────────────────────────────────────────────────────────

_FMT_MINIMAL = "%(message)s"
_FMT_VERBOSE = "%(asctime)s [%(name)s] %(message)s"
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_SHORT = "%H:%M:%S"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

# werkzeug logs every request at INFO
_NOISY_LOGGERS = ("werkzeug", "urllib3")


def resolve_level(debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Pick the console level from CLI flags, then the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(LOG_LEVEL_ENV, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Configure the root logger for the whole process.

    Args:
        level: Console level name.
        log_file: Optional log file path.
        log_file_level: Level for the file handler (defaults to ``level``).
        quiet_third_party: Hold noisy library loggers at WARNING unless
            running at DEBUG.
    """
    numeric_level = _parse_level(level)

    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_SHORT
    elif numeric_level <= logging.INFO:
        fmt, datefmt = _FMT_VERBOSE, _DATEFMT_SHORT
    else:
        fmt, datefmt = _FMT_MINIMAL, None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    effective_level = numeric_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_DEBUG, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    root.setLevel(effective_level)

    if quiet_third_party and numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def setup_logging_from_env(level: str) -> None:
    """``setup_logging`` with the file options read from the environment."""
    setup_logging(
        level=level,
        log_file=os.environ.get(LOG_FILE_ENV),
        log_file_level=os.environ.get(LOG_FILE_LEVEL_ENV),
        quiet_third_party=level.upper() != "DEBUG",
    )


def _parse_level(level: str | None) -> int:
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
