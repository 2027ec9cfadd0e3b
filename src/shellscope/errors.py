"""Exceptions raised by shellscope sessions.

Only the entry point (`shellscope.entry`) turns these into a process exit;
every other layer lets them propagate.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from shellscope.process.command import show_command


class ShellscopeError(Exception):
    """Base class for all shellscope failures.

    Raised directly by `Session.terror()` for ad-hoc script failures.
    """


@dataclass
class CommandFailed(ShellscopeError):
    """A child process exited non-zero while fail_on_nonzero_exit was on."""

    path: str
    command_args: list[str] = field(default_factory=list)
    exit_code: int = 1
    stderr: str = ""

    def __str__(self) -> str:
        code_msg = ""
        if self.exit_code == 127:
            code_msg = ". exit code 127 usually means the command does not exist (in the PATH)"
        return (
            f"error running: {show_command(self.path, self.command_args)}"
            f"\nexit status: {self.exit_code}{code_msg}"
            f"\nstderr: {self.stderr}"
        )


@dataclass
class LaunchFailed(ShellscopeError):
    """The OS refused to create the child process (e.g. executable not found)."""

    path: str
    command_args: list[str] = field(default_factory=list)
    cause: OSError | None = None

    def __str__(self) -> str:
        return f"could not start: {show_command(self.path, self.command_args)}\n{self.cause}"


@dataclass
class ShellExit(ShellscopeError):
    """Explicit request to end the session with an exit code."""

    code: int = 0

    def __str__(self) -> str:
        return f"exit {self.code}"


@dataclass
class QuietExit(ShellscopeError):
    """Exit with a code but without diagnostics or a persisted trace log."""

    code: int = 1

    def __str__(self) -> str:
        return f"quiet exit {self.code}"


@dataclass
class ContextualFailure(ShellscopeError):
    """Another failure re-raised with a human-readable description attached."""

    inner: BaseException
    context: str

    def __str__(self) -> str:
        return f"\n{self.context}\nException: {self.inner!r}"


@dataclass
class NotADirectory(ShellscopeError):
    """cd was asked to enter something that is not a directory."""

    path: str

    def __str__(self) -> str:
        return f"not a directory: {self.path}"
