"""
Configuration Management for Lifeline

Configuration is layered, later layers winning:
built-in defaults, config/default.yaml, config/config.yaml and finally
LIFELINE_* environment variables.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Tuple

import yaml


class ConfigurationError(Exception):
    """Configuration-related errors"""
    pass


VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
VALID_EVENT_TYPES = ['panic_button', 'detected_pattern', 'manual']

DEFAULT_CONFIG: Dict[str, Any] = {
    "app": {
        "name": "Lifeline",
        "version": "1.0.0",
        "debug": False
    },
    "emergency": {
        "countdown_seconds": 5,
        "tick_interval_seconds": 1.0,
        "call_feedback_delay_seconds": 1.5,
        "require_location_for_text": True,
        "event_type": "manual"
    },
    "database": {
        "path": "data/lifeline.db"
    },
    "logging": {
        "level": "INFO",
        "file": "logs/lifeline.log",
        "max_size": "10MB",
        "backup_count": 5,
        "console": True,
        "console_level": "INFO"
    }
}


def _to_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ('1', 'true', 'yes', 'on'):
        return True
    if lowered in ('0', 'false', 'no', 'off'):
        return False
    raise ValueError(f"not a boolean: {value!r}")


# Environment variable -> (dotted key, converter)
ENV_OVERRIDES: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "LIFELINE_DEBUG": ("app.debug", _to_bool),
    "LIFELINE_LOG_LEVEL": ("logging.level", str.upper),
    "LIFELINE_DB_PATH": ("database.path", str),
    "LIFELINE_COUNTDOWN_SECONDS": ("emergency.countdown_seconds", int),
    "LIFELINE_CALL_FEEDBACK_DELAY": ("emergency.call_feedback_delay_seconds", float),
}


def deep_merge(base: Dict, override: Dict) -> Dict:
    """Return base with override merged in, recursing into nested sections"""
    result = dict(base)
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def set_dotted(config: Dict, key: str, value: Any) -> None:
    """Set a value addressed as 'section.key', creating sections as needed"""
    *sections, leaf = key.split('.')
    for section in sections:
        config = config.setdefault(section, {})
    config[leaf] = value


class ConfigurationManager:
    """
    Loads, validates and serves the Lifeline configuration.
    """

    def __init__(self, config_dir: str = "config"):
        self.config_dir = Path(config_dir)
        self.config: Dict[str, Any] = {}
        self.defaults = copy.deepcopy(DEFAULT_CONFIG)
        self.watchers: Dict[str, List[Callable[[str, Any], None]]] = {}
        self.logger = logging.getLogger(__name__)

    def load_config(self) -> None:
        """Load every layer, merge them and validate the result"""
        layers = [
            ("defaults", self.defaults),
            ("default.yaml", self._load_file(self.config_dir / "default.yaml")),
            ("config.yaml", self._load_file(self.config_dir / "config.yaml")),
            ("environment", self._load_env()),
        ]

        merged: Dict[str, Any] = {}
        for name, layer in layers:
            if layer:
                merged = deep_merge(merged, layer)
                self.logger.debug(f"Applied configuration layer {name}")

        self.config = copy.deepcopy(merged)
        self._validate()
        self.logger.info(f"Configuration loaded from {self.config_dir}")

    def _load_env(self) -> Dict[str, Any]:
        overrides: Dict[str, Any] = {}
        for env_var, (key, convert) in ENV_OVERRIDES.items():
            raw = os.getenv(env_var)
            if raw is None:
                continue
            try:
                set_dotted(overrides, key, convert(raw))
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {env_var}: {raw!r}") from e
        return overrides

    def _load_file(self, path: Path) -> Dict[str, Any]:
        """Read a YAML layer; unreadable files are logged and skipped"""
        if not path.exists():
            return {}

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            self.logger.error(f"Error loading config file {path}: {e}")
            return {}

        if data is None:
            return {}
        if not isinstance(data, dict):
            self.logger.error(f"Config file {path} does not contain a mapping")
            return {}
        return data

    def _validate(self) -> None:
        errors = self._emergency_errors() + self._logging_errors()
        if not self.get('database.path'):
            errors.append("database.path must be set")

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

    def _emergency_errors(self) -> List[str]:
        errors = []

        countdown = self.get('emergency.countdown_seconds')
        if isinstance(countdown, bool) or not isinstance(countdown, int) or countdown < 0:
            errors.append(f"Invalid countdown seconds: {countdown!r}")

        tick = self.get('emergency.tick_interval_seconds')
        if isinstance(tick, bool) or not isinstance(tick, (int, float)) or tick <= 0:
            errors.append(f"Invalid tick interval: {tick!r}")

        delay = self.get('emergency.call_feedback_delay_seconds')
        if isinstance(delay, bool) or not isinstance(delay, (int, float)) or delay < 0:
            errors.append(f"Invalid call feedback delay: {delay!r}")

        event_type = self.get('emergency.event_type')
        if event_type not in VALID_EVENT_TYPES:
            errors.append(f"Invalid emergency event type: {event_type!r}")

        return errors

    def _logging_errors(self) -> List[str]:
        errors = []
        levels = [self.get('logging.level'), self.get('logging.console_level')]
        levels += list((self.get('logging.services') or {}).values())
        for level in levels:
            if str(level).upper() not in VALID_LOG_LEVELS:
                errors.append(f"Invalid log level: {level!r}")
        return errors

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value addressed as 'section.key'"""
        current: Any = self.config
        for part in key.split('.'):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    def set(self, key: str, value: Any) -> None:
        """Set a value at runtime and notify watchers of that key"""
        set_dotted(self.config, key, value)

        for callback in self.watchers.get(key, []):
            try:
                callback(key, value)
            except Exception as e:
                self.logger.error(f"Error in config watcher for {key}: {e}")

    def watch(self, key: str, callback: Callable[[str, Any], None]) -> None:
        self.watchers.setdefault(key, []).append(callback)

    def get_section(self, section: str) -> Dict[str, Any]:
        return self.get(section, {})

    def get_emergency_settings(self) -> Dict[str, Any]:
        """The emergency section with any missing keys filled from the defaults"""
        return deep_merge(self.defaults['emergency'], self.get_section('emergency'))
