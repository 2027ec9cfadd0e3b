"""shellscope: shell-style scripting with in-process sessions."""

__version__ = "0.1.0"

# Public API
from shellscope.config import Config, get_config, load_config
from shellscope.entry import (
    ExitRequested,
    Failure,
    Outcome,
    QuietExitRequested,
    Success,
    run_session,
    run_shell,
    run_shell_no_dir,
)
from shellscope.errors import (
    CommandFailed,
    ContextualFailure,
    LaunchFailed,
    NotADirectory,
    QuietExit,
    ShellExit,
    ShellscopeError,
)
from shellscope.process.command import Command, show_command, to_text_arg
from shellscope.session import LaunchStrategy, Session, SessionState

__all__ = [
    # Entry points
    "run_session",
    "run_shell",
    "run_shell_no_dir",
    "Outcome",
    "Success",
    "ExitRequested",
    "QuietExitRequested",
    "Failure",
    # Session
    "Session",
    "SessionState",
    "LaunchStrategy",
    "Command",
    "show_command",
    "to_text_arg",
    # Errors
    "ShellscopeError",
    "CommandFailed",
    "LaunchFailed",
    "ShellExit",
    "QuietExit",
    "ContextualFailure",
    "NotADirectory",
    # Config
    "Config",
    "load_config",
    "get_config",
]
