"""Configuration management for shellscope.

Provides hierarchical YAML-based configuration with:
- System-level config (/etc/shellscope/ or %PROGRAMDATA%)
- User-level config (~/.config/shellscope/, ~/.shellscope/ or %APPDATA%)
- Project-level config ($session_root/.shellscope/)
- Environment variable overrides (highest priority)

Example usage:
    from shellscope.config import load_config

    config = load_config(session_root="/path/to/project")
    print(config.session.echo_commands)
    print(config.failure_log.directory)
"""

from shellscope.config.loader import (
    get_config,
    load_config,
    reset_config,
)
from shellscope.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from shellscope.config.schema import (
    Config,
    FailureLogConfig,
    LoggingConfig,
    ProcessConfig,
    SessionConfig,
)

__all__ = [
    # Main API
    "Config",
    "load_config",
    "get_config",
    "reset_config",
    # Schema types
    "SessionConfig",
    "ProcessConfig",
    "FailureLogConfig",
    "LoggingConfig",
    # Path utilities
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
