"""Configuration schema dataclasses for shellscope.

Defines the structure of configuration at all levels (system, user, project).
All fields have defaults so partial configs merge together cleanly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class SessionConfig:
    """Initial policy flags for every new session.

    Example config.yaml:
        session:
          echo_stdout: true
          echo_commands: false
          tracing: true
          escape_args: true
          fail_on_nonzero_exit: true
    """

    echo_stdout: bool = True  # Echo child stdout lines as they are read
    echo_commands: bool = False  # Print each command line before running it
    tracing: bool = True  # Record operations in the trace log
    escape_args: bool = True  # False runs commands through the shell
    fail_on_nonzero_exit: bool = True  # Raise CommandFailed on exit != 0


@dataclass
class ProcessConfig:
    """Child process handling."""

    terminate_timeout: float = 5.0  # Seconds between terminate() and kill()
    stream_limit: int = 1024 * 1024  # Max bytes per line read from a child stream


@dataclass
class FailureLogConfig:
    """Where the trace log goes when a session dies."""

    enabled: bool = True  # Write numbered log files (False: inline trace)
    directory: str = ".shellscope"  # Relative to the session's working directory


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # TRACE, DEBUG, VERBOSE, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, takes precedence over level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object.

    Aggregates all configuration sections. Unknown top-level keys are kept
    in `extra` so project files can carry their own settings.
    """

    session: SessionConfig = field(default_factory=SessionConfig)
    process: ProcessConfig = field(default_factory=ProcessConfig)
    failure_log: FailureLogConfig = field(default_factory=FailureLogConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    extra: dict[str, Any] = field(default_factory=dict)
