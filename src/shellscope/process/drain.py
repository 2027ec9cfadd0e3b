"""Concurrent line-by-line draining of a child's stdout and stderr.

Both pipes are read at the same time so a child that fills one pipe while
the other is idle never blocks. Lines within a stream keep their order;
nothing is promised about stdout lines relative to stderr lines.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import AsyncIterator, Callable
from typing import TypeVar

from shellscope.logging import get_logger

log = get_logger("process")

A = TypeVar("A")

FoldCallback = Callable[[A, str], A]


_DISCARD_CHUNK = 64 * 1024


async def _discard(stream: asyncio.StreamReader) -> None:
    """Read and drop whatever is left so the writer never blocks on a full pipe."""
    try:
        while await stream.read(_DISCARD_CHUNK):
            pass
    except OSError as e:
        log.debug("Discarding stream output stopped: %s", e)


async def read_lines(stream: asyncio.StreamReader) -> AsyncIterator[str]:
    """Yield decoded lines (newline stripped) until EOF or a read error.

    After an over-long line or a read error no more lines are produced, but
    the rest of the stream is still consumed up to EOF.
    """
    while True:
        try:
            raw = await stream.readline()
        except (OSError, ValueError) as e:
            log.debug("Stream read stopped: %s", e)
            await _discard(stream)
            return
        if not raw:
            return
        line = raw.decode("utf-8", errors="replace")
        if line.endswith("\n"):
            line = line[:-1]
            if line.endswith("\r"):
                line = line[:-1]
        yield line


async def fold_lines(
    stream: asyncio.StreamReader,
    start: A,
    fold: FoldCallback[A],
    echo: Callable[[str], None] | None = None,
) -> A:
    """Fold every line of `stream` into an accumulator, echoing as it goes."""
    acc = start
    async for line in read_lines(stream):
        if echo is not None:
            echo(line)
        acc = fold(acc, line)
    return acc


def _echo_stdout(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


def _echo_stderr(line: str) -> None:
    sys.stderr.write(line + "\n")
    sys.stderr.flush()


def _fold_text(acc: str, line: str) -> str:
    return acc + line + "\n"


async def drain(
    stdout: asyncio.StreamReader,
    stderr: asyncio.StreamReader,
    start: A,
    fold: FoldCallback[A],
    *,
    echo_stdout: bool = True,
) -> tuple[A, str]:
    """Consume both output streams of a child to completion.

    Args:
        stdout: Child stdout reader.
        stderr: Child stderr reader.
        start: Initial stdout accumulator.
        fold: `(acc, line) -> acc` applied to each stdout line in order.
        echo_stdout: Echo stdout lines to our own stdout while reading.

    Returns:
        The final stdout accumulator and the stderr text, every line
        newline-terminated like run() output. Stderr lines are always
        echoed to our own stderr.
    """
    out_task = asyncio.create_task(
        fold_lines(stdout, start, fold, _echo_stdout if echo_stdout else None)
    )
    err_task = asyncio.create_task(fold_lines(stderr, "", _fold_text, _echo_stderr))

    try:
        acc, err_text = await asyncio.gather(out_task, err_task)
    finally:
        pending = [task for task in (out_task, err_task) if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    return acc, err_text
