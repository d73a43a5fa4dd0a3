"""
Logging setup for the stackboot CLI.

main.py calls ``setup_logging`` once, before any command runs; every
module logs through ``logging.getLogger(__name__)``.

Console level, highest precedence first:
    --debug / --verbose / --quiet  >  $STACKBOOT_LOG_LEVEL  >  WARNING

A second, independent sink can be added with $STACKBOOT_LOG_FILE
(level from $STACKBOOT_LOG_FILE_LEVEL, default: the console level).
Every external command, and the stderr of each failed one, is logged
at DEBUG.
"""

from __future__ import annotations

import logging
import os
import sys

ENV_LOG_LEVEL = "STACKBOOT_LOG_LEVEL"
ENV_LOG_FILE = "STACKBOOT_LOG_FILE"
ENV_LOG_FILE_LEVEL = "STACKBOOT_LOG_FILE_LEVEL"

# ── Formats per console level ───────────────────────────────────

# (format, datefmt); the most verbose entry the level reaches wins.
_CONSOLE_FORMATS = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s %(message)s", "%H:%M:%S"),
)
_CONSOLE_DEFAULT = ("%(levelname)s: %(message)s", None)

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Libraries that may log through the root logger at INFO
_NOISY_LOGGERS = ("urllib3", "asyncio")


def resolve_level(debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Console level name from the CLI flags, then the environment."""
    for flag, name in ((debug, "DEBUG"), (verbose, "INFO"), (quiet, "ERROR")):
        if flag:
            return name
    return os.environ.get(ENV_LOG_LEVEL, "WARNING")


def _level_number(name: str | None) -> int:
    value = getattr(logging, name.upper(), None) if name else None
    return value if isinstance(value, int) else logging.WARNING


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = _CONSOLE_DEFAULT
    for threshold, candidate, candidate_datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            fmt, datefmt = candidate, candidate_datefmt
            break
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(os.path.expanduser(path), encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
    return handler


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Replace the root logger's handlers with stackboot's.

    Args:
        level: Console level name; unknown names mean WARNING.
        log_file: Optional log file path (``~`` is expanded).
        log_file_level: Level for the file; defaults to ``level``.
        quiet_third_party: Hold ``_NOISY_LOGGERS`` at WARNING unless
            the console is at DEBUG.
    """
    console_level = _level_number(level)
    handlers = [_console_handler(console_level)]

    if log_file:
        file_level = _level_number(log_file_level) if log_file_level else console_level
        handlers.append(_file_handler(log_file, file_level))

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(min(h.level for h in handlers))

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False
