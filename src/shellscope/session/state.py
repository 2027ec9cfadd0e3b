"""Per-session mutable state."""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from shellscope.config.schema import SessionConfig


class LaunchStrategy(Enum):
    """How a command and its arguments become a child process."""

    ESCAPED = "escaped"  # argv passed verbatim, no shell
    SHELL = "shell"  # joined into one string for the shell to interpret


@dataclass
class SessionState:
    """Everything one session knows about itself.

    Attributes:
        directory: Absolute working directory; always an existing directory.
        environment: Variables handed verbatim to every child process.
        last_exit_code: Exit code of the most recent command (0 = success).
        last_stderr: Full stderr text of the most recent command.
        pending_stdin: Text fed to the next command, cleared when it starts.
        echo_stdout: Echo child stdout lines while they are read.
        echo_commands: Print each command line before it runs.
        tracing_enabled: Append operations to trace_log.
        fail_on_nonzero_exit: Raise CommandFailed on a non-zero exit.
        trace_log: Append-only record of executed operations.
        launch_strategy: Escaped argv or shell-interpreted command string.
    """

    directory: Path
    environment: dict[str, str] = field(default_factory=dict)
    last_exit_code: int = 0
    last_stderr: str = ""
    pending_stdin: str | None = None
    echo_stdout: bool = True
    echo_commands: bool = False
    tracing_enabled: bool = True
    fail_on_nonzero_exit: bool = True
    trace_log: str = ""
    launch_strategy: LaunchStrategy = LaunchStrategy.ESCAPED

    @classmethod
    def from_environment(cls, config: SessionConfig | None = None) -> SessionState:
        """Capture the host process's environment and cwd as a new state."""
        config = config or SessionConfig()
        return cls(
            directory=Path(os.getcwd()),
            environment=dict(os.environ),
            echo_stdout=config.echo_stdout,
            echo_commands=config.echo_commands,
            tracing_enabled=config.tracing,
            fail_on_nonzero_exit=config.fail_on_nonzero_exit,
            launch_strategy=(
                LaunchStrategy.ESCAPED if config.escape_args else LaunchStrategy.SHELL
            ),
        )

    @property
    def escape_args(self) -> bool:
        return self.launch_strategy is LaunchStrategy.ESCAPED

    @escape_args.setter
    def escape_args(self, value: bool) -> None:
        self.launch_strategy = LaunchStrategy.ESCAPED if value else LaunchStrategy.SHELL

    def snapshot(self) -> SessionState:
        """Independent copy for restoring later."""
        return copy.deepcopy(self)

    def restore_from(self, snapshot: SessionState) -> None:
        """Roll scope-local fields back to `snapshot`.

        Directory, environment, policy flags and launch strategy come from the
        snapshot. The trace log is the snapshot's followed by ours. The exit
        code, stderr and pending stdin describe the latest command and stay.
        """
        self.directory = snapshot.directory
        self.environment = dict(snapshot.environment)
        self.echo_stdout = snapshot.echo_stdout
        self.echo_commands = snapshot.echo_commands
        self.tracing_enabled = snapshot.tracing_enabled
        self.fail_on_nonzero_exit = snapshot.fail_on_nonzero_exit
        self.launch_strategy = snapshot.launch_strategy
        self.trace_log = snapshot.trace_log + self.trace_log

    def append_trace(self, message: str) -> None:
        self.trace_log += message + "\n"
