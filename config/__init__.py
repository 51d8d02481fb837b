"""
Configuration for the Invoice Totals Engine.

Every heuristic threshold (timeouts, tolerances, page ceilings, confidence
floors) lives in ``settings.yaml`` and is read through get_config(), so
callers always pass the in-code default alongside the key.

The settings file can be swapped with the ``INVOICE_TOTALS_CONFIG``
environment variable or by passing a path to the first
ConfigurationManager() call.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_ENV_VAR = "INVOICE_TOTALS_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "settings.yaml"


class ConfigurationManager:
    """
    Process-wide settings loaded once from YAML.

    Attributes:
        config_path (Path): Settings file in use.

    Example:
        >>> settings = ConfigurationManager()
        >>> settings.get("reconciliation.tolerance_cents")
        5
        >>> settings.get("acquisition.ocr.page_timeout", 60)
        60
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
        Args:
            config_path: Settings file. Only honoured on the first call;
                falls back to $INVOICE_TOTALS_CONFIG, then config/settings.yaml.
        """
        if self._initialized:
            return

        self.config_path = Path(config_path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
        self._load_config()
        self._initialized = True

    def _load_config(self) -> None:
        """
        Raises:
            FileNotFoundError: If the settings file doesn't exist.
            yaml.YAMLError: If the settings file is not valid YAML.
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r', encoding='utf-8') as f:
            self._config = yaml.safe_load(f) or {}

        # Relative log paths are anchored at the project root, not the CWD
        log_file = self.get("logging.file.path")
        if log_file and not Path(log_file).is_absolute():
            self._config['logging']['file']['path'] = str(Path(__file__).parent.parent / log_file)

    def get(self, key: str, default: Any = None) -> Any:
        """
        Look up a dot-notation key such as ``"totals.stacked.max_header_length"``.

        Missing keys, and keys that run into a non-mapping, return the default.
        """
        node = self._config
        try:
            for part in key.split('.'):
                node = node[part]
        except (KeyError, TypeError):
            return default
        return node

    def set(self, key: str, value: Any) -> None:
        """Override one value in memory; the file on disk is never rewritten."""
        *parents, leaf = key.split('.')
        node = self._config
        for part in parents:
            node = node.setdefault(part, {})
        node[leaf] = value

    def reload(self) -> None:
        """Re-read the settings file, dropping in-memory overrides."""
        self._load_config()

    @classmethod
    def reset(cls) -> None:
        """Forget the loaded instance (tests, or switching settings files)."""
        cls._instance = None


def get_config(key: str, default: Any = None) -> Any:
    """Shorthand for ``ConfigurationManager().get(key, default)``."""
    return ConfigurationManager().get(key, default)


__all__ = ['ConfigurationManager', 'get_config', 'CONFIG_ENV_VAR']
