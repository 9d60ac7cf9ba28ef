"""
Logging configuration — one-time setup for the shipwright CLI.

main.py calls ``setup_from_env`` before any sub-command runs; modules
only ever do ``logger = logging.getLogger(__name__)``.

Console level, highest precedence first:
    --debug / --verbose / --quiet  >  SHIPWRIGHT_LOG_LEVEL  >  WARNING

SHIPWRIGHT_LOG_FILE adds a file handler, at SHIPWRIGHT_LOG_FILE_LEVEL
(or the console level when unset). Deploy output the user is meant to
read goes through click, never through logging.
"""

from __future__ import annotations

import logging
import os
import sys

LOG_LEVEL_ENV = "SHIPWRIGHT_LOG_LEVEL"
LOG_FILE_ENV = "SHIPWRIGHT_LOG_FILE"
LOG_FILE_LEVEL_ENV = "SHIPWRIGHT_LOG_FILE_LEVEL"

DEFAULT_LEVEL = "WARNING"

# Console format per threshold: the quieter the run, the terser the line.
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(levelname)s: %(message)s", None),
)

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


def resolve_level(debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Pick the console level from the global flags, then the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(LOG_LEVEL_ENV, DEFAULT_LEVEL)


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = next((f, d) for threshold, f, d in _CONSOLE_FORMATS if level <= threshold)
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
    return handler


def setup_logging(
    level: str = DEFAULT_LEVEL,
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Replace the root logger's handlers for this process.

    Args:
        level: Console level name.
        log_file: Also write to this file.
        log_file_level: Level for ``log_file``; defaults to ``level``.
    """
    console_level = _parse_level(level)
    handlers = [_console_handler(console_level)]
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        handlers.append(_file_handler(log_file, file_level))

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    # The root must let through whatever the most verbose handler wants.
    root.setLevel(min(h.level for h in handlers))

    logging.raiseExceptions = False


def setup_from_env(level: str) -> None:
    """``setup_logging`` with the file settings taken from the environment."""
    setup_logging(
        level=level,
        log_file=os.environ.get(LOG_FILE_ENV),
        log_file_level=os.environ.get(LOG_FILE_LEVEL_ENV),
    )


def _parse_level(level: str | None) -> int:
    """Level name → numeric level; anything unknown falls back to WARNING."""
    numeric = logging.getLevelName(level.upper()) if level else None
    return numeric if isinstance(numeric, int) else logging.WARNING
