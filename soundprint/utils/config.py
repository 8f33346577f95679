"""
Configuration management for soundprint.

Loads configuration from YAML files with environment variable
interpolation and merges it over the built-in defaults.
"""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from soundprint.utils.errors import ConfigurationError


class ConfigManager:
    """
    Manages configuration loaded from YAML files.

    Features:
    - YAML configuration loading
    - Environment variable interpolation (${VAR_NAME})
    - Nested key access with dot notation
    - Schema validation
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        self._config: Dict[str, Any] = config_dict or {}
        self._env_pattern = re.compile(r'\$\{([^}]+)\}')

    @classmethod
    def from_file(cls, file_path: Path) -> "ConfigManager":
        """
        Create ConfigManager from YAML file.

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        if not file_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {file_path}",
                config_key=str(file_path)
            )

        try:
            with open(file_path, 'r') as f:
                config_dict = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse YAML configuration: {e}",
                config_key=str(file_path)
            )

        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                "Configuration root must be a mapping",
                config_key=str(file_path)
            )

        manager = cls(config_dict)
        manager._interpolate_env_vars()
        return manager

    def _interpolate_env_vars(self) -> None:
        self._config = self._interpolate(self._config)

    def _interpolate(self, value: Any) -> Any:
        """Recursively replace ${ENV_VAR} in strings of dicts and lists."""
        if isinstance(value, dict):
            return {k: self._interpolate(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._interpolate(item) for item in value]
        if isinstance(value, str):
            return self._interpolate_string(value)
        return value

    def _interpolate_string(self, s: str) -> str:
        """Replace ${ENV_VAR} with environment variable value."""
        def replace(match: re.Match) -> str:
            value = os.environ.get(match.group(1))
            if value is None:
                return match.group(0)  # Keep original if not found
            return value

        return self._env_pattern.sub(replace, s)

    def get(
        self,
        key: str,
        default: Any = None,
        required: bool = False
    ) -> Any:
        """
        Get configuration value using dot notation.

        Example:
            config.get("matching.threshold", default=0.85)
            config.get("library.path", required=True)
        """
        value = self._config

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                if required:
                    raise ConfigurationError(
                        f"Required configuration key not found: {key}",
                        config_key=key
                    )
                return default

        return value

    def get_section(self, key: str) -> Dict[str, Any]:
        """Get a configuration section as a dictionary (empty if absent)."""
        value = self.get(key, default={})
        if not isinstance(value, dict):
            return {}
        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value using dot notation."""
        keys = key.split('.')
        current = self._config

        for k in keys[:-1]:
            if k not in current:
                current[k] = {}
            current = current[k]

        current[keys[-1]] = value

    def to_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary."""
        return copy.deepcopy(self._config)

    def validate(self, schema: Dict[str, Any]) -> None:
        """
        Validate configuration against a schema.

        Schema format:
            {
                "fingerprint.window_size": {"type": int, "required": True},
                "matching.threshold": {"type": (int, float)}
            }

        Raises:
            ConfigurationError: If validation fails
        """
        for key, rules in schema.items():
            value = self.get(key)
            expected_type = rules.get("type")

            if value is None:
                if rules.get("required", False):
                    raise ConfigurationError(
                        f"Required configuration missing: {key}",
                        config_key=key
                    )
                continue

            if expected_type and not isinstance(value, expected_type):
                expected = (
                    " or ".join(t.__name__ for t in expected_type)
                    if isinstance(expected_type, tuple)
                    else expected_type.__name__
                )
                raise ConfigurationError(
                    f"Invalid type for {key}: expected {expected}, "
                    f"got {type(value).__name__}",
                    config_key=key
                )


CONFIG_SCHEMA: Dict[str, Any] = {
    "audio.max_file_size": {"type": int, "required": True},
    "audio.decode_retries": {"type": int},
    "fingerprint.window_size": {"type": int, "required": True},
    "fingerprint.hop_size": {"type": int, "required": True},
    "fingerprint.estimator": {"type": str},
    "matching.threshold": {"type": (int, float), "required": True},
    "matching.max_offset": {"type": int},
    "matching.offset_step": {"type": int},
    "matching.offset_fraction": {"type": (int, float)},
    "matching.decay": {"type": (int, float)},
    "performance.max_workers": {"type": int},
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from file merged over the defaults.

    Args:
        config_path: Optional path to config file.
                    If None, tries "config/config.yaml" then "config.yaml"

    Returns:
        Dict[str, Any]: Configuration dictionary
    """
    if config_path is None:
        default_paths = [
            Path("config/config.yaml"),
            Path("config.yaml"),
        ]

        for path in default_paths:
            if path.exists():
                config_path = str(path)
                break

    config = get_default_config()

    if config_path:
        manager = ConfigManager.from_file(Path(config_path))
        config = _deep_merge(config, manager.to_dict())

    ConfigManager(config).validate(CONFIG_SCHEMA)
    return config


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def get_default_config() -> Dict[str, Any]:
    """Return default configuration values."""
    return {
        "audio": {
            "supported_formats": [
                ".wav", ".mp3", ".m4a", ".aac", ".flac", ".ogg", ".aif", ".aiff"
            ],
            "max_file_size": 52428800,  # 50MB
            "target_sample_rate": None,  # keep the file's native rate
            "decode_retries": 1,
        },
        "fingerprint": {
            "window_size": 512,
            "hop_size": 2048,
            "estimator": "decimated",
        },
        "matching": {
            "threshold": 0.85,
            "max_offset": 10,
            "offset_fraction": 0.05,
            "offset_step": 5,
            "decay": 1.5,
        },
        "library": {
            "path": "user_fingerprints/fingerprints.json",
        },
        "logging": {
            "level": "INFO",
            "format": "json",
            "file": None,
        },
        "performance": {
            "max_workers": 4,
        },
    }
