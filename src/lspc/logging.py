"""Logging for lspc.

All loggers live below ``lspc``:

- ``lspc.<module>`` for the engine's own messages
- ``lspc.wire`` for raw protocol traffic, at TRACE
- ``lspc.server.<name>`` for what a language server reports about itself
  (stderr output and window/logMessage)

Output goes to the file named by the logging config or LSPC_LOG, else to
stderr when it is a terminal. An editor plugin's stderr is usually a pipe
nobody reads, so nothing is written there in that case.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lspc.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("lspc")

_initialized = False

_LEVEL_MAP = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "VERBOSE": VERBOSE,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# -v count to level: 0 errors only ... 4 wire traffic
_VERBOSITY_MAP = {
    0: logging.ERROR,
    1: logging.WARNING,
    2: logging.INFO,
    3: VERBOSE,
    4: TRACE,
}

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DATE_FORMAT = "%H:%M:%S"


class _LspcFormatter(logging.Formatter):
    """Lowercase level names and logger names without the lspc prefix."""

    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        record.name = record.name.removeprefix("lspc.")
        return super().format(record)


def level_for(config: LoggingConfig | None) -> int:
    """Resolve the effective log level for a logging config.

    The integer verbosity takes precedence over the level name.
    """
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        return _VERBOSITY_MAP.get(config.verbose, TRACE)
    if config.level:
        return _LEVEL_MAP.get(config.level.upper(), logging.INFO)
    return logging.INFO


def _open_handler(log_path: str | None) -> logging.Handler | None:
    if log_path:
        try:
            return logging.FileHandler(os.path.expanduser(log_path), mode="a", encoding="utf-8")
        except OSError as e:
            if not sys.stderr.isatty():
                return None
            print(f"[lspc] Failed to open log file {log_path}: {e}", file=sys.stderr)
    if sys.stderr.isatty():
        return logging.StreamHandler(sys.stderr)
    return None


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Install the lspc log handler once.

    Verbosity levels (-v / logging.verbose):
        0 = error
        1 = warning
        2 = info (default)
        3 = verbose, includes server stderr and log messages
        4 = trace, includes every message sent and received

    Later calls are no-ops until reset_logging().
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = level_for(config)
    logger.setLevel(level)

    log_path = config.file if config and config.file else os.environ.get("LSPC_LOG")
    handler = _open_handler(log_path)
    if handler is None:
        return
    handler.setLevel(level)
    handler.setFormatter(_LspcFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)


def reset_logging() -> None:
    """Remove installed handlers so setup_logging() can run again."""
    global _initialized
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    _initialized = False


def get_logger(name: str | None = None) -> logging.Logger:
    """Get ``lspc`` or one of its children, e.g. get_logger("session")."""
    if name:
        return logger.getChild(name)
    return logger


def wire_logger() -> logging.Logger:
    return logger.getChild("wire")


def server_logger(server: str) -> logging.Logger:
    """Logger for output of the language server called server."""
    return logger.getChild("server").getChild(server)
