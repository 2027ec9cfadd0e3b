"""Where config.yaml files are looked up.

    system   /etc/shellscope/                  %PROGRAMDATA%\\shellscope\\
    user     $XDG_CONFIG_HOME/shellscope/      %APPDATA%\\shellscope\\
             ~/.config/shellscope/ (if ~/.config exists), else ~/.shellscope/
    project  <script root>/.shellscope/

The project directory is also where failure logs are written by default.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "shellscope"
SHORT_NAME = ".shellscope"


def _windows_dir(variable: str) -> Path | None:
    base = os.environ.get(variable)
    return Path(base) / APP_NAME if base else None


def get_system_config_path() -> Path | None:
    if sys.platform == "win32":
        directory = _windows_dir("PROGRAMDATA")
    else:
        directory = Path("/etc") / APP_NAME
    return directory / CONFIG_FILENAME if directory else None


def get_user_config_path() -> Path | None:
    if sys.platform == "win32":
        directory = _windows_dir("APPDATA")
        return directory / CONFIG_FILENAME if directory else None

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / APP_NAME / CONFIG_FILENAME
    home = Path.home()
    if (home / ".config").exists():
        return home / ".config" / APP_NAME / CONFIG_FILENAME
    return home / SHORT_NAME / CONFIG_FILENAME


def get_project_config_path(session_root: str) -> Path:
    return Path(session_root) / SHORT_NAME / CONFIG_FILENAME


def get_config_paths(session_root: str | None = None) -> list[Path]:
    """Candidate config files, lowest priority first. They may not exist."""
    candidates = [get_system_config_path(), get_user_config_path()]
    if session_root:
        candidates.append(get_project_config_path(session_root))
    return [path for path in candidates if path is not None]
