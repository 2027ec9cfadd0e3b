"""Spawn child processes bound to a session's directory and environment."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from shellscope.errors import LaunchFailed
from shellscope.logging import get_logger
from shellscope.session.state import LaunchStrategy

if TYPE_CHECKING:
    from shellscope.session.state import SessionState

log = get_logger("process")

DEFAULT_STREAM_LIMIT = 1024 * 1024


async def launch(
    path: str,
    args: list[str],
    state: SessionState,
    *,
    limit: int = DEFAULT_STREAM_LIMIT,
) -> asyncio.subprocess.Process:
    """Start `path` with `args` using the state's launch strategy.

    The child gets the session directory as cwd and exactly the session
    environment (not merged with os.environ). All three standard streams
    are pipes.

    Args:
        path: Executable (or first word of the shell command line).
        args: Arguments, already normalized to text.
        state: Session state to read cwd, env and strategy from.
        limit: Buffer limit for the stdout/stderr stream readers.

    Returns:
        The running process.

    Raises:
        LaunchFailed: If the OS could not create the process.
    """
    cwd = str(state.directory)
    env = dict(state.environment)

    try:
        if state.launch_strategy is LaunchStrategy.ESCAPED:
            process = await asyncio.create_subprocess_exec(
                path,
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=env,
                limit=limit,
            )
        else:
            command_line = " ".join([path, *args])
            process = await asyncio.create_subprocess_shell(
                command_line,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=env,
                limit=limit,
            )
    except OSError as e:
        log.debug("Launch of %s failed: %s", path, e)
        raise LaunchFailed(path, list(args), e) from e

    log.debug("Started pid %s: %s %s", process.pid, path, args)
    return process
