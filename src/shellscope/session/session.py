"""The session: one mutable SessionState plus every operation on it.

A Session is driven from a single asyncio task. Commands are coroutines;
filesystem and environment operations are plain methods. Scoped variants
(`silently()`, `chdir()`, `errexit()`, ...) are context managers built on
`sub()`, which restores the scope-local parts of the state on exit.

    async def main(sh: Session) -> None:
        with sh.chdir("build"), sh.errexit(False):
            await sh.run("make", "-j4")
        if sh.last_exit_code() != 0:
            sh.echo_err(sh.last_stderr())
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import sys
import time as _time
from collections.abc import Awaitable, Callable, Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, TypeVar

from shellscope.config.schema import Config, ProcessConfig
from shellscope.errors import (
    CommandFailed,
    NotADirectory,
    QuietExit,
    ShellExit,
    ShellscopeError,
)
from shellscope.logging import TRACE, get_logger
from shellscope.process.command import Command, show_command, to_text_arg
from shellscope.process.drain import FoldCallback, drain
from shellscope.process.launcher import launch
from shellscope.session.filesystem import FilesystemOps
from shellscope.session.state import SessionState

log = get_logger("session")
trace_logger = get_logger("trace")

A = TypeVar("A")
T = TypeVar("T")


def _fold_text(acc: str, line: str) -> str:
    return acc + line + "\n"


def _fold_discard(acc: None, line: str) -> None:
    return None


def _ssh_remote(commands: Iterable[tuple[Any, Iterable[Any]]]) -> str | None:
    """One quoted `a && b` command line for the remote shell, or None if empty."""
    rendered = [show_command(exe, args) for exe, args in commands]
    if not rendered:
        return None
    return "'" + " && ".join(rendered) + "'"


class Session(FilesystemOps):
    """Execution context owning exactly one SessionState.

    Args:
        state: The state this session owns from now on.
        process_config: Child process handling (termination grace period,
            stream buffer limit).
    """

    def __init__(
        self,
        state: SessionState,
        *,
        process_config: ProcessConfig | None = None,
    ) -> None:
        self._state = state
        self._process_config = process_config or ProcessConfig()

    @classmethod
    def from_environment(cls, config: Config | None = None) -> Session:
        """New session seeded from the host environment and cwd."""
        config = config or Config()
        return cls(
            SessionState.from_environment(config.session),
            process_config=config.process,
        )

    # -- state access --------------------------------------------------------

    def get(self) -> SessionState:
        """Copy of the current state."""
        return self._state.snapshot()

    def put(self, state: SessionState) -> None:
        """Replace the current state with a copy of `state`."""
        self._state = state.snapshot()

    def modify(self, fn: Callable[[SessionState], SessionState]) -> None:
        """Replace the state with `fn(copy of state)`."""
        self._state = fn(self._state.snapshot())

    # -- tracing -------------------------------------------------------------

    def trace(self, message: str) -> None:
        """Record an operation in the trace log (when tracing is enabled)."""
        if self._state.tracing_enabled:
            self._state.append_trace(message)
            trace_logger.log(TRACE, "%s", message)

    async def tag(self, action: Awaitable[T], message: str) -> T:
        """Trace `message`, then await `action`."""
        self.trace(message)
        return await action

    # -- sub-sessions --------------------------------------------------------

    @contextmanager
    def sub(self) -> Iterator[Session]:
        """Nested scope that restores directory, environment and flags on exit.

        The trace log starts empty inside the scope and is appended to the
        outer log afterwards. The exit code, stderr and pending stdin of the
        last command run inside the scope remain visible after it. Exceptions
        propagate unchanged.
        """
        saved = self._state.snapshot()
        self._state.trace_log = ""
        try:
            yield self
        finally:
            self._state.restore_from(saved)

    async def run_scoped(self, operation: Awaitable[T]) -> T:
        """Await `operation` inside a sub-session."""
        with self.sub():
            return await operation

    @contextmanager
    def silently(self) -> Iterator[Session]:
        """Sub-session that echoes neither command output nor command lines."""
        with self.sub():
            self._state.echo_stdout = False
            self._state.echo_commands = False
            yield self

    @contextmanager
    def verbosely(self) -> Iterator[Session]:
        """Sub-session that echoes command output and command lines."""
        with self.sub():
            self._state.echo_stdout = True
            self._state.echo_commands = True
            yield self

    @contextmanager
    def print_stdout(self, enabled: bool) -> Iterator[Session]:
        with self.sub():
            self._state.echo_stdout = enabled
            yield self

    @contextmanager
    def print_commands(self, enabled: bool) -> Iterator[Session]:
        with self.sub():
            self._state.echo_commands = enabled
            yield self

    @contextmanager
    def tracing(self, enabled: bool) -> Iterator[Session]:
        """Sub-session with trace logging on or off."""
        with self.sub():
            self._state.tracing_enabled = enabled
            yield self

    @contextmanager
    def escaping(self, enabled: bool) -> Iterator[Session]:
        """Sub-session with argument escaping on or off.

        With escaping off, commands go through the shell, so wildcards and
        other metacharacters are expanded.
        """
        with self.sub():
            self._state.escape_args = enabled
            yield self

    @contextmanager
    def errexit(self, enabled: bool) -> Iterator[Session]:
        """Sub-session deciding whether non-zero exits raise CommandFailed.

        With it off, check last_exit_code() yourself.
        """
        with self.sub():
            self._state.fail_on_nonzero_exit = enabled
            yield self

    @contextmanager
    def chdir(self, path: Any) -> Iterator[Session]:
        """Sub-session in another directory."""
        with self.sub():
            self.cd(path)
            yield self

    @contextmanager
    def chdir_p(self, path: Any) -> Iterator[Session]:
        """chdir(), creating the directory first if needed."""
        self.mkdir_p(path)
        with self.chdir(path):
            yield self

    # -- directory and environment -------------------------------------------

    def cd(self, path: Any) -> None:
        """Change the session directory (not the host process cwd)."""
        target = self.canonic(path)
        self.trace(f"cd {target}")
        if not target.is_dir():
            raise NotADirectory(str(target))
        self._state.directory = target

    def pwd(self) -> Path:
        self.trace("pwd")
        return self._state.directory

    def setenv(self, name: str, value: str) -> None:
        """Set a variable for every command run from now on in this scope."""
        env = self._state.environment
        env.pop(name, None)
        env[name] = value

    def get_env(self, name: str) -> str | None:
        """Value of a variable; unset and empty both give None."""
        return self._state.environment.get(name) or None

    def get_env_text(self, name: str) -> str:
        """Value of a variable; unset and empty both give ""."""
        return self.get_env_def(name, "")

    def get_env_def(self, name: str, default: str) -> str:
        value = self.get_env(name)
        return default if value is None else value

    def append_to_path(self, path: Any) -> None:
        """Append an (absolutized) directory to the session's PATH."""
        directory = str(self.abs_path(path))
        current = self.get_env_text("PATH")
        self.setenv("PATH", f"{current}{os.pathsep}{directory}" if current else directory)

    # -- running commands ----------------------------------------------------

    async def run_fold_lines(
        self,
        start: A,
        fold: FoldCallback[A],
        path: Any,
        *args: Any,
    ) -> A:
        """Run one command, folding its stdout line by line.

        The pending stdin (if any) is fed to the child and cleared. Stdout is
        folded with `fold(acc, line)` while stderr is collected into
        last_stderr(). The child is terminated if anything goes wrong before
        it exits.

        Raises:
            LaunchFailed: The process could not be started.
            CommandFailed: Non-zero exit while fail_on_nonzero_exit is on.
        """
        exe = to_text_arg(path)
        arguments = [to_text_arg(a) for a in args]
        state = self._state

        stdin_text = state.pending_stdin
        state.pending_stdin = None
        state.last_exit_code = 0
        state.last_stderr = ""

        command_line = show_command(exe, arguments)
        if state.echo_commands:
            self.echo(command_line)
        self.trace(command_line)

        process = await launch(exe, arguments, state, limit=self._process_config.stream_limit)
        try:
            assert process.stdin is not None
            assert process.stdout is not None
            assert process.stderr is not None

            # Buffered by the transport and flushed while we drain
            if stdin_text is not None:
                process.stdin.write(stdin_text.encode("utf-8"))
            process.stdin.close()

            result, stderr_text = await drain(
                process.stdout,
                process.stderr,
                start,
                fold,
                echo_stdout=state.echo_stdout,
            )
            state.last_stderr = stderr_text
            exit_code = await process.wait()

            # The child may exit without reading its input
            with contextlib.suppress(BrokenPipeError, ConnectionResetError):
                await process.stdin.wait_closed()
        except BaseException:
            await self._terminate(process)
            raise

        state.last_exit_code = exit_code
        log.debug("pid %s exited with %s", process.pid, exit_code)

        if exit_code != 0 and state.fail_on_nonzero_exit:
            raise CommandFailed(exe, arguments, exit_code, state.last_stderr)
        return result

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Stop a child that is still running: terminate, then kill."""
        if process.returncode is not None:
            return
        log.warning("Terminating pid %s", process.pid)
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=self._process_config.terminate_timeout)
        except asyncio.TimeoutError:
            log.warning("pid %s ignored terminate, killing", process.pid)
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()

    async def run(self, path: Any, *args: Any) -> str:
        """Run a command and return its stdout (each line newline-terminated)."""
        return await self.run_fold_lines("", _fold_text, path, *args)

    async def run_(self, path: Any, *args: Any) -> None:
        """Run a command, reading and discarding its stdout."""
        await self.run_fold_lines(None, _fold_discard, path, *args)

    def cmd(self, path: Any, *args: Any) -> Command:
        """Argument builder; await it (or its run()/run_()) to execute."""
        return Command(self, path, *args)

    def command(self, path: Any, *base_args: Any) -> Callable[..., Awaitable[str]]:
        """Bind leading arguments for reuse.

            monit = sh.command("monit", "-c", "monitrc")
            await monit("stop", "program")
        """

        async def bound(*more: Any) -> str:
            return await self.run(path, *base_args, *more)

        return bound

    def command_(self, path: Any, *base_args: Any) -> Callable[..., Awaitable[None]]:
        async def bound(*more: Any) -> None:
            await self.run_(path, *base_args, *more)

        return bound

    def command1(self, path: Any, *base_args: Any) -> Callable[..., Awaitable[str]]:
        """Like command(), but the first call argument goes before the bound ones.

            git = sh.command1("git", "--no-pager")
            await git("log", "-1")  # git log --no-pager -1
        """

        async def bound(first: Any, *more: Any) -> str:
            return await self.run(path, first, *base_args, *more)

        return bound

    def command1_(self, path: Any, *base_args: Any) -> Callable[..., Awaitable[None]]:
        async def bound(first: Any, *more: Any) -> None:
            await self.run_(path, first, *base_args, *more)

        return bound

    def set_stdin(self, text: str) -> None:
        """Feed `text` to the next command run."""
        self._state.pending_stdin = text

    def last_exit_code(self) -> int:
        return self._state.last_exit_code

    def last_stderr(self) -> str:
        return self._state.last_stderr

    async def pipe(self, first: Awaitable[str], second: Awaitable[T]) -> T:
        """Run `first` quietly, then `second` with first's stdout as its stdin.

        Strictly sequential: `first` completes before `second` starts.

            out = await sh.pipe(sh.run("ls"), sh.run("sort", "-r"))
        """
        with self.print_stdout(False):
            output = await first
        self.set_stdin(output)
        return await second

    async def ssh_pairs(self, server: str, commands: Iterable[tuple[Any, Iterable[Any]]]) -> str:
        """Run several commands on `server` over ssh, joined with `&&`.

        Escaping is turned off for the ssh invocation itself.
        """
        remote = _ssh_remote(commands)
        if remote is None:
            return ""
        with self.escaping(False):
            return await self.run("ssh", server, remote)

    async def ssh_pairs_(self, server: str, commands: Iterable[tuple[Any, Iterable[Any]]]) -> None:
        """ssh_pairs() that discards the remote output line by line."""
        remote = _ssh_remote(commands)
        if remote is None:
            return
        with self.escaping(False):
            await self.run_("ssh", server, remote)

    # -- printing ------------------------------------------------------------

    def echo(self, message: str) -> None:
        sys.stdout.write(message + "\n")
        sys.stdout.flush()

    def echo_n(self, message: str) -> None:
        sys.stdout.write(message)
        sys.stdout.flush()

    def echo_err(self, message: str) -> None:
        sys.stderr.write(message + "\n")
        sys.stderr.flush()

    def echo_n_err(self, message: str) -> None:
        sys.stderr.write(message)
        sys.stderr.flush()

    def inspect(self, value: Any) -> None:
        """Trace and print the repr of a value."""
        text = repr(value)
        self.trace(text)
        self.echo(text)

    def inspect_err(self, value: Any) -> None:
        text = repr(value)
        self.trace(text)
        self.echo_err(text)

    @staticmethod
    def show_command(path: Any, args: Iterable[Any] = ()) -> str:
        return show_command(path, args)

    # -- exiting -------------------------------------------------------------

    def exit(self, code: int = 0) -> None:
        """End the session with `code`; non-zero codes produce diagnostics."""
        self.trace(f"exit {code}")
        raise ShellExit(code)

    def error_exit(self, message: str) -> None:
        """Print `message` and exit with status 1."""
        self.echo(message)
        self.exit(1)

    def quiet_exit(self, code: int) -> None:
        """Exit with `code` without diagnostics or a saved trace log."""
        if code == 0:
            self.exit(0)
        raise QuietExit(code)

    def terror(self, message: str) -> None:
        """Fail the session with a plain message."""
        raise ShellscopeError(message)

    # -- utilities -----------------------------------------------------------

    async def time(self, action: Awaitable[T]) -> tuple[float, T]:
        """Await `action` in a sub-session; return (seconds elapsed, result)."""
        with self.sub():
            self.trace("time")
            started = _time.perf_counter()
            result = await action
            return _time.perf_counter() - started, result

    async def sleep(self, seconds: float) -> None:
        """Suspend the session."""
        await asyncio.sleep(seconds)
