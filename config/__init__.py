"""
Configuration Module for the Invoice Confidence Parser.

Every threshold, weight and penalty used by the parsing pipeline is read
from ``config/settings.yaml`` through this module. Code asks for values with
``get_config("dotted.key", default)``; the default is the documented value,
so a missing key never changes behaviour.
"""

import yaml
from pathlib import Path
from typing import Any, Dict, Optional


class ConfigurationManager:
    """
    Singleton access point for the parser configuration.

    Attributes:
        config_path (Path): Path to the YAML settings file.

    Example:
        >>> config = ConfigurationManager()
        >>> config.get("validation.tolerance")
        0.02
        >>> config.get("enhancement.confidence_threshold")
        0.8
    """

    _instance: Optional['ConfigurationManager'] = None
    _config: Dict[str, Any] = {}

    def __new__(cls, config_path: Optional[str] = None) -> 'ConfigurationManager':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[str] = None) -> None:
        """
        Load the settings file once per process.

        Args:
            config_path: Optional path to a settings file.
                        Defaults to config/settings.yaml.
        """
        if self._initialized:
            return

        if config_path is None:
            self.config_path = Path(__file__).parent / "settings.yaml"
        else:
            self.config_path = Path(config_path)

        self._load_config()
        self._initialized = True

    def _load_config(self) -> None:
        """
        Read and resolve the settings file.

        Raises:
            FileNotFoundError: If the settings file doesn't exist.
            yaml.YAMLError: If the settings file is not valid YAML.
        """
        self._config = load_yaml_file(self.config_path)
        self._resolve_paths()

    def _resolve_paths(self) -> None:
        """Make relative entries under ``paths`` absolute against the project root."""
        project_root = Path(__file__).parent.parent

        for key, value in (self._config.get('paths') or {}).items():
            if value and not Path(value).is_absolute():
                self._config['paths'][key] = str(project_root / value)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key: Configuration key in dot notation (e.g., "validation.tolerance").
            default: Value returned when the key doesn't exist.

        Returns:
            Configuration value or default.
        """
        value = self._config

        try:
            for k in key.split('.'):
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """
        Override a configuration value in memory.

        Intermediate sections are created as needed. The change lasts until
        ``reload`` or ``reset``.

        Args:
            key: Configuration key in dot notation.
            value: New value.
        """
        keys = key.split('.')
        section = self._config
        for k in keys[:-1]:
            if not isinstance(section.get(k), dict):
                section[k] = {}
            section = section[k]
        section[keys[-1]] = value

    def get_all(self) -> Dict[str, Any]:
        """Return a shallow copy of the complete configuration."""
        return self._config.copy()

    def reload(self) -> None:
        """Re-read the settings file, discarding in-memory overrides."""
        self._load_config()

    @classmethod
    def reset(cls) -> None:
        """Drop the singleton so the next access reloads from disk."""
        cls._instance = None


def load_yaml_file(path: Path) -> Dict[str, Any]:
    """
    Load a YAML mapping from disk.

    Args:
        path: File to read.

    Returns:
        Parsed mapping (empty dict for an empty file).

    Raises:
        FileNotFoundError: If the file doesn't exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


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


__all__ = ['ConfigurationManager', 'get_config', 'load_yaml_file']
