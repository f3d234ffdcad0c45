#!/usr/bin/env python3
"""
Configuration management for lessonwatch.
Handles backend commands and watch tuning with local JSON storage and
environment overrides.
"""

import os
import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Dict, Any

from loguru import logger

from .errors import ConfigError
from .exercises.marker import MARKER
from .exercises.models import Mode
from .exercises.verifier import DEFAULT_COMMANDS, DEFAULT_TIMEOUT

ENV_PREFIX = 'LESSONWATCH_'


@dataclass
class Settings:
    """Effective settings: defaults, then config file, then environment"""
    manifest: str = 'info.toml'
    debounce_seconds: float = 1.0
    verify_timeout: float = DEFAULT_TIMEOUT
    max_workers: int = 4
    compile_command: str = DEFAULT_COMMANDS[Mode.COMPILE]
    test_command: str = DEFAULT_COMMANDS[Mode.TEST]
    marker: str = MARKER
    exercises_dir: str = 'exercises'
    solutions_dir: str = 'solutions'

    def commands(self) -> Dict[Mode, str]:
        return {Mode.COMPILE: self.compile_command, Mode.TEST: self.test_command}


SETTING_TYPES = {f.name: f.type for f in fields(Settings)}


def get_config_dir() -> Path:
    """Get the lessonwatch config directory (~/.lessonwatch)"""
    override = os.environ.get(ENV_PREFIX + 'HOME')
    config_dir = Path(override) if override else Path.home() / '.lessonwatch'
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_path() -> Path:
    """Get the config file path"""
    return get_config_dir() / 'config.json'


def load_config() -> Dict[str, Any]:
    """Load configuration from file"""
    config_path = get_config_path()
    if config_path.exists():
        try:
            with open(config_path, 'r') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError):
            return {}
    return {}


def save_config(config: Dict[str, Any]) -> None:
    """Save configuration to file"""
    config_path = get_config_path()
    with open(config_path, 'w') as f:
        json.dump(config, f, indent=2)


def coerce_value(key: str, value: Any) -> Any:
    """Convert a raw value (usually a string) to the type of setting key"""
    if key not in SETTING_TYPES:
        raise ConfigError(f"Unknown setting '{key}' (known: {', '.join(SETTING_TYPES)})")

    expected = SETTING_TYPES[key]
    if expected is int and isinstance(value, float) and not value.is_integer():
        raise ConfigError(f"{key} must be a whole number, got {value!r}")
    try:
        converted = expected(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {key}: {value!r}") from None

    if expected in (int, float) and converted <= 0:
        raise ConfigError(f"{key} must be positive, got {value!r}")
    if expected is str and not converted.strip():
        raise ConfigError(f"{key} must not be empty")
    return converted


def get_config_value(key: str, default: Any = None) -> Any:
    """Get a specific config value"""
    config = load_config()
    return config.get(key, default)


def set_config_value(key: str, value: Any) -> None:
    """Validate and store a config value"""
    config = load_config()
    config[key] = coerce_value(key, value)
    save_config(config)


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """
    Build effective settings.

    Priority (lowest first):
    1. Built-in defaults
    2. ~/.lessonwatch/config.json
    3. LESSONWATCH_<KEY> environment variables
    4. Explicit overrides (e.g. command-line flags)

    Unknown keys in the config file are ignored. Invalid file or environment
    values are reported and the lower-priority value is kept, so `config show`
    still works; invalid overrides raise ConfigError.
    """
    values: Dict[str, Any] = {}

    for key, value in load_config().items():
        if key in SETTING_TYPES:
            _apply_stored(values, key, value, source=str(get_config_path()))

    for key in SETTING_TYPES:
        env_value = os.environ.get(ENV_PREFIX + key.upper())
        if env_value:
            _apply_stored(values, key, env_value, source=ENV_PREFIX + key.upper())

    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = coerce_value(key, value)

    return Settings(**values)


def _apply_stored(values: Dict[str, Any], key: str, value: Any, source: str) -> None:
    try:
        values[key] = coerce_value(key, value)
    except ConfigError as e:
        logger.warning(f"Ignoring {source}: {e}")
