"""Root pytest configuration for all tests."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from shellscope.config import reset_config
from shellscope.session import Session, SessionState

pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory):
    """Keep host config files and SHELLSCOPE_* variables out of tests."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home))
    for name in ("SHELLSCOPE_LOG", "SHELLSCOPE_VERBOSE", "SHELLSCOPE_PRINT_COMMANDS"):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def sh(tmp_path: Path) -> Session:
    """A session rooted in a temporary directory."""
    return Session(SessionState(directory=tmp_path, environment=dict(os.environ)))
