"""Diagnostic logging for shellscope.

This is separate from the session trace log, which records what a script
did. Diagnostics go to the `shellscope` logger tree:

    shellscope.session   command lifecycle, forced termination
    shellscope.process   launches, exits, stream read failures
    shellscope.trace     every session trace entry, at TRACE
    shellscope.entry     failure log persistence

Nothing is emitted until setup_logging() attaches a handler. Output goes to a
file (config `logging.file` or SHELLSCOPE_LOG) or, on an interactive terminal
only, to stderr. Child stderr is echoed to that same terminal.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shellscope.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("shellscope")

_initialized = False

_NAMED_LEVELS = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "VERBOSE": VERBOSE,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# verbose: 0 errors only ... 4 every trace entry
_VERBOSITY = (logging.ERROR, logging.WARNING, logging.INFO, VERBOSE, TRACE)

_FORMAT = "%(asctime)s %(levelname)s: %(message)s"


class _Formatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.levelname = record.levelname.lower()
        return super().format(record)


def resolve_level(config: LoggingConfig | None) -> int:
    """Effective level: a `verbose` number wins over a `level` name.

    Unknown names fall back to INFO; verbosity above 4 means TRACE.
    """
    if config is None:
        return logging.INFO
    if config.verbose is not None:
        return _VERBOSITY[max(0, min(config.verbose, len(_VERBOSITY) - 1))]
    if config.level:
        return _NAMED_LEVELS.get(config.level.upper(), logging.INFO)
    return logging.INFO


def _log_file(config: LoggingConfig | None) -> str | None:
    path = (config.file if config else None) or os.environ.get("SHELLSCOPE_LOG")
    return os.path.expanduser(path) if path else None


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Attach handlers to the `shellscope` logger.

    Only the first call has an effect; run_session() calls it for every
    session, and the first configuration wins for the process.
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    level = resolve_level(config)
    logger.setLevel(level)
    formatter = _Formatter(_FORMAT, datefmt="%H:%M:%S")

    path = _log_file(config)
    if path:
        try:
            handler: logging.Handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        except OSError as e:
            if sys.stderr.isatty():
                print(f"[shellscope] cannot open log file {path}: {e}", file=sys.stderr)
                _add_stderr_handler(formatter, level)
            return
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    elif sys.stderr.isatty():
        _add_stderr_handler(formatter, level)


def reset_logging() -> None:
    """Drop installed handlers so setup_logging() can run again."""
    global _initialized
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    _initialized = False


def _add_stderr_handler(formatter: logging.Formatter, level: int) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """The `shellscope` logger, or its child `shellscope.<name>`."""
    return logger.getChild(name) if name else logger
