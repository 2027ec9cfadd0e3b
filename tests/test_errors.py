"""Tests for error messages."""

from __future__ import annotations

from shellscope.errors import (
    CommandFailed,
    ContextualFailure,
    LaunchFailed,
    NotADirectory,
    QuietExit,
    ShellExit,
    ShellscopeError,
)


class TestMessages:
    """Rendered error text."""

    def test_command_failed(self) -> None:
        err = CommandFailed("grep", ["-r", "two words"], 2, "no match")
        assert str(err) == "error running: grep -r 'two words'\nexit status: 2\nstderr: no match"

    def test_command_failed_127_hint(self) -> None:
        err = CommandFailed("missing-tool", [], 127, "")
        assert "exit status: 127. exit code 127 usually means" in str(err)

    def test_launch_failed(self) -> None:
        cause = FileNotFoundError(2, "No such file or directory")
        err = LaunchFailed("nope", ["x"], cause)
        assert str(err).startswith("could not start: nope x\n")

    def test_contextual_failure(self) -> None:
        err = ContextualFailure(OSError("disk"), "during copy from: a to: b")
        assert str(err) == "\nduring copy from: a to: b\nException: OSError('disk')"

    def test_not_a_directory(self) -> None:
        assert str(NotADirectory("/x")) == "not a directory: /x"

    def test_hierarchy(self) -> None:
        for err in (
            CommandFailed("x"),
            LaunchFailed("x"),
            ShellExit(),
            QuietExit(),
            NotADirectory("x"),
            ContextualFailure(ValueError(), "c"),
        ):
            assert isinstance(err, ShellscopeError)

    def test_exit_defaults(self) -> None:
        assert ShellExit().code == 0
        assert QuietExit().code == 1
