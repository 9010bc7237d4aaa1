"""Logging for the monitor plugin.

The plugin is loaded into a host process that owns both the terminal and the
root logger. Everything is therefore logged under the ``agentmonitor`` logger,
which never propagates to the host's handlers. Records go to a log file when
one is configured (``logging.file`` or AGENT_MONITOR_LOG); without a file they
go to stderr, and only when stderr is an interactive console.

Several host processes may append to the same file, so each line carries the
process id.

Verbosity levels: error(0), warning(1), info(2), verbose(3), trace(4).
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from agentmonitor.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

LOG_FORMAT = "%(asctime)s.%(msecs)03d pid=%(process)d %(levelname)s [%(name)s] %(message)s"
DATE_FORMAT = "%H:%M:%S"

logger = logging.getLogger("agentmonitor")
logger.propagate = False
# Silent until setup_logging() installs real handlers
_null_handler = logging.NullHandler()
logger.addHandler(_null_handler)

_initialized = False

_VERBOSITY_LEVELS = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)


class _LowercaseLevelFormatter(logging.Formatter):
    """Formatter that emits lowercase level names."""

    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Pick the log level from configuration.

    ``verbose`` wins over ``level``. Verbosity above 4 means trace; unknown
    level names fall back to info.
    """
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        return _VERBOSITY_LEVELS[max(0, min(config.verbose, len(_VERBOSITY_LEVELS) - 1))]
    if config.level:
        name = config.level.upper()
        if name == "WARN":
            name = "WARNING"
        level = logging.getLevelName(name)
        if isinstance(level, int):
            return level
    return logging.INFO


def resolve_log_path(config: LoggingConfig | None) -> str | None:
    """Log file from config, else AGENT_MONITOR_LOG, with ~ expanded."""
    path = config.file if config and config.file else os.environ.get("AGENT_MONITOR_LOG")
    return os.path.expanduser(path) if path else None


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Install handlers on the agentmonitor logger.

    Called once when the plugin is built; later calls are no-ops until
    reset_logging().
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = resolve_level(config)
    logger.setLevel(level)
    formatter = _LowercaseLevelFormatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    log_path = resolve_log_path(config)
    if log_path:
        try:
            directory = os.path.dirname(log_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            handler: logging.Handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        except OSError as e:
            if not sys.stderr.isatty():
                return
            print(f"[agentmonitor] Failed to open log file {log_path}: {e}", file=sys.stderr)
            handler = logging.StreamHandler(sys.stderr)
    elif sys.stderr.isatty():
        handler = logging.StreamHandler(sys.stderr)
    else:
        return

    handler.setLevel(level)
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def reset_logging() -> None:
    """Drop installed handlers so setup_logging() can run again."""
    global _initialized
    for handler in list(logger.handlers):
        if handler is _null_handler:
            continue
        logger.removeHandler(handler)
        handler.close()
    _initialized = False


def get_logger(name: str | None = None) -> logging.Logger:
    """Get the package logger or one of its children (e.g. "store", "dispatch")."""
    if name:
        return logger.getChild(name)
    return logger
