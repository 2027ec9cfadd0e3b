"""Session layer: state, the Session context, filesystem operations."""

from shellscope.session.filesystem import FilesystemOps
from shellscope.session.session import Session
from shellscope.session.state import LaunchStrategy, SessionState

__all__ = [
    "FilesystemOps",
    "LaunchStrategy",
    "Session",
    "SessionState",
]
