"""
Configuration Module for the Invoice Pipeline.

This module provides centralized configuration management using YAML files.
Packaged defaults live in settings.yaml; a user file is merged over them so
it only has to carry the keys it changes (typically the ``llm`` section).
"""

import copy
import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional

# Environment variable naming a user configuration file
CONFIG_ENV_VAR = "INVOICE_PIPELINE_CONFIG"


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge ``override`` into a copy of ``base``, descending into nested dicts.

    Args:
        base: Default configuration.
        override: Values that take precedence.

    Returns:
        New merged dictionary.
    """
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class ConfigurationManager:
    """
    Centralized configuration management for the invoice pipeline.

    Loads the packaged settings.yaml, merges an optional user file over it
    and provides dot-notation access to the result.

    Attributes:
        config_path (Path): Path to the packaged defaults.
        user_config_path (Path): Optional user file merged over the defaults.

    Example:
        >>> config = ConfigurationManager("my_llm.yaml")
        >>> config.get("llm.backend")
        'remote'
    """

    _instance: Optional['ConfigurationManager'] = None
    _config: Dict[str, Any] = {}

    def __new__(cls, config_path: Optional[str] = None) -> 'ConfigurationManager':
        """Singleton pattern to ensure only one configuration instance exists."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_path: Optional user configuration file. Defaults to the
                        file named by INVOICE_PIPELINE_CONFIG, if set.
        """
        if self._initialized:
            return

        self.config_path = Path(__file__).parent / "settings.yaml"

        user_path = config_path or os.environ.get(CONFIG_ENV_VAR)
        self.user_config_path = Path(user_path) if user_path else None

        self._load_config()
        self._initialized = True

    def _load_config(self) -> None:
        """
        Load the defaults and merge the user file over them.

        Raises:
            FileNotFoundError: If a configuration file doesn't exist.
            yaml.YAMLError: If a configuration file is invalid.
        """
        config = self._read_yaml(self.config_path)

        if self.user_config_path is not None:
            config = deep_merge(config, self._read_yaml(self.user_config_path))

        self._config = config
        self._resolve_paths()

    @staticmethod
    def _read_yaml(path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}

    def _resolve_paths(self) -> None:
        """Resolve relative ``paths`` entries against the working directory."""
        base_dir = Path.cwd()

        for key, value in self._config.get('paths', {}).items():
            if value and not Path(value).is_absolute():
                self._config['paths'][key] = str(base_dir / value)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key: Configuration key in dot notation (e.g., "llm.backend").
            default: Default value if key doesn't exist.

        Returns:
            Configuration value or default.

        Example:
            >>> config.get("llm.ollama.model")
            'qwen3:8b'
            >>> config.get("nonexistent.key", "default_value")
            'default_value'
        """
        value = self._config

        try:
            for k in key.split('.'):
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def get_all(self) -> Dict[str, Any]:
        """Get a copy of the complete configuration dictionary."""
        return copy.deepcopy(self._config)

    def reload(self) -> None:
        """Reload configuration from disk."""
        self._load_config()

    @classmethod
    def reset(cls) -> None:
        """
        Reset the singleton instance.
        Useful for testing or switching configuration files.
        """
        cls._instance = None


def get_config(key: str, default: Any = None) -> Any:
    """
    Convenience function to get configuration values.

    Args:
        key: Configuration key in dot notation.
        default: Default value if key doesn't exist.

    Returns:
        Configuration value or default.
    """
    return ConfigurationManager().get(key, default)


__all__ = ['ConfigurationManager', 'get_config', 'deep_merge', 'CONFIG_ENV_VAR']
