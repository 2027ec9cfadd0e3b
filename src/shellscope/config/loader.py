"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Layer merging (deep_merge)
- Environment variable overrides
- Config caching with reload support
- Conversion from dict to typed Config dataclasses
"""

from __future__ import annotations

import functools
import logging
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml

from shellscope.config.paths import get_config_paths
from shellscope.config.schema import (
    Config,
    FailureLogConfig,
    LoggingConfig,
    ProcessConfig,
    SessionConfig,
)

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("shellscope.config")

_cached_config: Config | None = None

_TRUTHY = {"1", "true", "yes", "on"}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Overlay `override` on `base` without mutating either.

    Nested mappings merge key by key, so a project file can change one
    session flag and keep the rest. A None value leaves the base value in
    place; anything else (lists included) replaces it.
    """
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def merge_configs(layers: Iterable[dict[str, Any]]) -> dict[str, Any]:
    """Merge config layers, lowest priority first."""
    return functools.reduce(deep_merge, (layer for layer in layers if layer), {})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Parse one config file. Missing, unreadable or malformed files count as empty."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as e:
        _log.warning("Cannot read %s: %s", path, e)
        return {}

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        _log.warning("Ignoring malformed config %s: %s", path, e)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        _log.warning("Ignoring %s: top level is not a mapping", path)
        return {}
    return data


def env_overrides() -> dict[str, Any]:
    """Build config dict from SHELLSCOPE_* environment variables.

    Environment variables take highest priority.
    """
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("SHELLSCOPE_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    verbose = os.environ.get("SHELLSCOPE_VERBOSE")
    if verbose:
        try:
            overrides.setdefault("logging", {})["verbose"] = int(verbose)
        except ValueError:
            _log.warning("Ignoring non-integer SHELLSCOPE_VERBOSE=%r", verbose)

    print_commands = os.environ.get("SHELLSCOPE_PRINT_COMMANDS")
    if print_commands:
        overrides.setdefault("session", {})["echo_commands"] = (
            print_commands.strip().lower() in _TRUTHY
        )

    return overrides


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass."""
    session_data = data.get("session") or {}
    defaults = SessionConfig()
    session = SessionConfig(
        echo_stdout=bool(session_data.get("echo_stdout", defaults.echo_stdout)),
        echo_commands=bool(session_data.get("echo_commands", defaults.echo_commands)),
        tracing=bool(session_data.get("tracing", defaults.tracing)),
        escape_args=bool(session_data.get("escape_args", defaults.escape_args)),
        fail_on_nonzero_exit=bool(
            session_data.get("fail_on_nonzero_exit", defaults.fail_on_nonzero_exit)
        ),
    )

    process_data = data.get("process") or {}
    process = ProcessConfig(
        terminate_timeout=float(
            process_data.get("terminate_timeout", ProcessConfig.terminate_timeout)
        ),
        stream_limit=int(process_data.get("stream_limit", ProcessConfig.stream_limit)),
    )

    failure_data = data.get("failure_log") or {}
    failure_log = FailureLogConfig(
        enabled=bool(failure_data.get("enabled", True)),
        directory=str(failure_data.get("directory", FailureLogConfig.directory)),
    )

    log_data = data.get("logging") or {}
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    known_keys = {"session", "process", "failure_log", "logging"}
    extra = {k: v for k, v in data.items() if k not in known_keys}

    return Config(
        session=session,
        process=process,
        failure_log=failure_log,
        logging=logging_config,
        extra=extra,
    )


def load_config(session_root: str | None = None, reload: bool = False) -> Config:
    """Merge system, user and project files, then SHELLSCOPE_* overrides.

    Later layers win. Only the global config (no `session_root`) is
    cached; pass `reload=True` to re-read it.
    """
    global _cached_config

    if _cached_config is not None and not reload and session_root is None:
        return _cached_config

    configs: list[dict[str, Any]] = []

    for path in get_config_paths(session_root):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    config = dict_to_config(merge_configs(configs))

    if session_root is None:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config.

    Useful for testing or forcing a reload.
    """
    global _cached_config
    _cached_config = None
