"""Top-level entry: run a session and turn its ending into a process exit.

    from shellscope import Session, run_shell

    async def main(sh: Session) -> str:
        return await sh.run("git", "rev-parse", "HEAD")

    head = run_shell(main)

`run_session()` never exits the interpreter; it reports how the session
ended as one of the Outcome variants. `run_shell()` runs it on a fresh event
loop and converts the outcome into a return value or a SystemExit.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generic, TypeVar

from rich.console import Console

from shellscope.config import Config, load_config
from shellscope.errors import QuietExit, ShellExit
from shellscope.logging import get_logger, setup_logging
from shellscope.session.session import Session

log = get_logger("entry")

console = Console(stderr=True)

T = TypeVar("T")

Action = Callable[[Session], Awaitable[T]]


@dataclass(frozen=True)
class Success(Generic[T]):
    """The session returned normally."""

    value: T


@dataclass(frozen=True)
class ExitRequested:
    """The session called exit(code). Non-zero codes carry a context."""

    code: int
    context: str = ""


@dataclass(frozen=True)
class QuietExitRequested:
    """The session called quiet_exit(code)."""

    code: int


@dataclass(frozen=True)
class Failure:
    """The session raised. `context` points at (or contains) the trace log."""

    kind: str
    error: Exception
    context: str


Outcome = Success[Any] | ExitRequested | QuietExitRequested | Failure


def persist_trace(base: Path, log_dir: str, trace: str) -> Path:
    """Write `trace` to the next numbered file in `base/log_dir`.

    Files are named `<n>.txt` with n one greater than the highest numeric
    file name already there (1 for an empty or new directory).
    """
    directory = base / log_dir
    directory.mkdir(parents=True, exist_ok=True)
    numbers = [
        int(entry.stem)
        for entry in directory.iterdir()
        if entry.is_file() and entry.stem.isdigit()
    ]
    path = directory / f"{max(numbers, default=0) + 1}.txt"
    path.write_text(trace, encoding="utf-8")
    return path


def explain(session: Session, *, fail_to_dir: bool, log_dir: str) -> str:
    """Where to find the trace log, or the trace log itself."""
    state = session.get()
    ran_commands = "Ran commands: \n" + state.trace_log
    if not fail_to_dir:
        return ran_commands
    try:
        path = persist_trace(state.directory, log_dir, state.trace_log)
    except OSError as e:
        log.warning("Could not save trace log: %s", e)
        return ran_commands
    return f"log of commands saved to: {path}"


async def run_session(
    action: Action[T],
    *,
    config: Config | None = None,
    fail_to_dir: bool | None = None,
) -> Outcome:
    """Run `action` in a fresh session seeded from this process.

    Args:
        action: Coroutine function receiving the Session.
        config: Configuration; loaded from the config cascade (with the
            current directory as project root) when None.
        fail_to_dir: Save the trace log to a numbered file on failure.
            Defaults to config.failure_log.enabled.

    Returns:
        Exactly one Outcome variant. Exceptions other than Exception
        subclasses (KeyboardInterrupt, cancellation) propagate.
    """
    config = config or load_config(session_root=os.getcwd())
    setup_logging(config.logging)
    use_dir = config.failure_log.enabled if fail_to_dir is None else fail_to_dir
    session = Session.from_environment(config)

    try:
        value = await action(session)
    except ShellExit as e:
        if e.code == 0:
            return ExitRequested(0)
        context = explain(session, fail_to_dir=use_dir, log_dir=config.failure_log.directory)
        return ExitRequested(e.code, context)
    except QuietExit as e:
        return QuietExitRequested(e.code)
    except Exception as e:
        log.debug("Session failed", exc_info=True)
        context = explain(session, fail_to_dir=use_dir, log_dir=config.failure_log.directory)
        return Failure(type(e).__name__, e, context)
    return Success(value)


def _report(summary: str, context: str) -> None:
    console.print(
        f"\n{context}\nException: {summary}",
        markup=False,
        highlight=False,
        soft_wrap=True,
    )


def run_shell(
    action: Action[T],
    *,
    config: Config | None = None,
    fail_to_dir: bool | None = None,
) -> T:
    """Run a session to completion and exit the interpreter if it did not succeed.

    Raises:
        SystemExit: For exit(), quiet_exit() and failures. Failures and
            non-zero exits print a diagnostic to stderr first.
    """
    outcome = asyncio.run(run_session(action, config=config, fail_to_dir=fail_to_dir))

    match outcome:
        case Success(value=value):
            return value
        case ExitRequested(code=0):
            raise SystemExit(0)
        case ExitRequested(code=code, context=context):
            _report(f"exit {code}", context)
            raise SystemExit(code)
        case QuietExitRequested(code=code):
            raise SystemExit(code)
        case Failure(error=error, context=context):
            _report(str(error), context)
            raise SystemExit(1)
    raise AssertionError(f"unhandled outcome: {outcome!r}")


def run_shell_no_dir(action: Action[T], *, config: Config | None = None) -> T:
    """run_shell() that prints the trace log instead of saving it to a file."""
    return run_shell(action, config=config, fail_to_dir=False)
