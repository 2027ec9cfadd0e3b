"""Command-line formatting and argument building."""

from __future__ import annotations

import os
from collections.abc import Generator, Iterable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from shellscope.session.session import Session


def to_text_arg(value: Any) -> str:
    """Normalize a command argument (path, text, number) to text."""
    if isinstance(value, str):
        return value
    if isinstance(value, os.PathLike):
        return os.fspath(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _quote(arg: str) -> str:
    if "'" in arg:
        return arg
    if any(ch.isspace() for ch in arg):
        return f"'{arg}'"
    return arg


def show_command(path: Any, args: Iterable[Any] = ()) -> str:
    """Render a command line for echoing and tracing.

    Arguments containing whitespace are wrapped in single quotes; arguments
    that already contain a single quote are left as they are.
    """
    return " ".join(_quote(to_text_arg(part)) for part in [path, *args])


class Command:
    """Argument accumulator for one external command.

    Each added argument is normalized with to_text_arg(); nothing runs until
    the builder (or its run() or run_()) is awaited:

        git = Command(sh, "git", "-C", repo)
        await git.arg("pull").args(["origin", "main"]).run_()
    """

    def __init__(self, session: Session, path: Any, *args: Any) -> None:
        self._session = session
        self.path = to_text_arg(path)
        self.arguments: list[str] = [to_text_arg(a) for a in args]

    def arg(self, value: Any) -> Command:
        self.arguments.append(to_text_arg(value))
        return self

    def args(self, values: Iterable[Any]) -> Command:
        self.arguments.extend(to_text_arg(v) for v in values)
        return self

    async def run(self) -> str:
        """Run the command and return its stdout."""
        return await self._session.run(self.path, *self.arguments)

    async def run_(self) -> None:
        """Run the command, discarding stdout."""
        await self._session.run_(self.path, *self.arguments)

    def __await__(self) -> Generator[Any, None, str]:
        return self.run().__await__()

    def __repr__(self) -> str:
        return f"<Command {show_command(self.path, self.arguments)}>"
