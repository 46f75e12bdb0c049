# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for xfile-impact."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from xfile_impact.extractors.registry import available_extractors
from xfile_impact.strategies import strategy_names

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = (".xfile_impact.yml", "xfile_impact.yml", "config.yml")


class ConfigurationError(Exception):
    """Raised when configuration validation fails critically."""

    pass


class Config:
    """Configuration for the impact analyzer.

    Loads configuration from a YAML file with validation and defaults. Invalid
    values in the file fall back to their defaults with a warning; invalid
    values passed through override() raise ConfigurationError.
    """

    DEFAULTS: Dict[str, Any] = {
        "strategy": "conservative",
        "extractor": "token",
        "cache_enabled": True,
        "cache_dir": ".xfile_impact/cache",
        "parallel_threshold": 100,
        "max_workers": 0,  # 0: one worker per CPU
        "worker_timeout_seconds": 300,
        "verify_digest": False,
        # None: built-in patterns; []: full-scan triggers disabled
        "full_scan_patterns": None,
        "ignore_patterns": [],
        "source_extensions": [".php"],
        "track_methods": False,
    }

    def __init__(self, config_path: Optional[Path] = None, project_root: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, the first of
                CONFIG_FILENAMES found in ``project_root`` is used.
            project_root: Directory searched for a configuration file
                (default: current directory).

        Raises:
            ConfigurationError: If an explicit ``config_path`` does not exist.
        """
        root = Path(project_root) if project_root is not None else Path.cwd()
        if config_path is not None and not Path(config_path).exists():
            raise ConfigurationError(f"Config file not found: {config_path}")
        if config_path is None:
            config_path = self._detect(root)

        self.config_path: Optional[Path] = Path(config_path) if config_path else None
        self._config: Dict[str, Any] = self._defaults()
        self._load_config()

    @staticmethod
    def _detect(root: Path) -> Optional[Path]:
        for filename in CONFIG_FILENAMES:
            candidate = root / filename
            if candidate.is_file():
                return candidate
        return None

    def _defaults(self) -> Dict[str, Any]:
        # Lists are copied so instances never share mutable defaults
        return {
            key: list(value) if isinstance(value, list) else value
            for key, value in self.DEFAULTS.items()
        }

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        if self.config_path is None:
            logger.info("No configuration file found, using defaults")
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            return
        except OSError as e:
            logger.warning(
                f"Cannot read configuration file {self.config_path}: {e}, using defaults"
            )
            return

        if loaded_config is None:
            logger.warning("Configuration file is empty, using defaults")
            return

        if not isinstance(loaded_config, dict):
            logger.warning(
                f"Configuration file must contain a YAML dictionary, "
                f"got {type(loaded_config)}, using defaults"
            )
            return

        self._validate_and_merge(loaded_config)

    def _validate_and_merge(self, loaded_config: Dict[str, Any]) -> None:
        """Validate loaded configuration and merge with defaults.

        Invalid parameters are logged as warnings and defaults are used.
        """
        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            if not self._validate_parameter(key, value):
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]}"
                )
                continue

            self._config[key] = value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        if key == "full_scan_patterns":
            return value is None or _is_string_list(value)

        expected_type = type(self.DEFAULTS[key])
        # bool is an int subclass; reject True/False for numeric settings
        if expected_type is int and isinstance(value, bool):
            return False
        if not isinstance(value, expected_type):
            return False

        if key == "strategy":
            return value in strategy_names()
        elif key == "extractor":
            return value in available_extractors()
        elif key in ("parallel_threshold", "worker_timeout_seconds"):
            return bool(value > 0)
        elif key == "max_workers":
            return bool(value >= 0)
        elif key == "cache_dir":
            return bool(value.strip())
        elif key == "ignore_patterns":
            return _is_string_list(value)
        elif key == "source_extensions":
            return bool(value) and all(
                isinstance(ext, str) and ext.startswith(".") for ext in value
            )

        return True

    def override(self, **values: Any) -> None:
        """Apply programmatic overrides (e.g. from command-line flags).

        None values are skipped, so unset flags can be passed through as-is.

        Raises:
            ConfigurationError: On an unknown key or invalid value.
        """
        for key, value in values.items():
            if value is None:
                continue
            if key not in self.DEFAULTS:
                raise ConfigurationError(f"Unknown configuration parameter '{key}'")
            if not self._validate_parameter(key, value):
                raise ConfigurationError(f"Invalid value for '{key}': {value!r}")
            self._config[key] = value

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._config)

    # Property accessors for all configuration values
    @property
    def strategy(self) -> str:
        """Dependency strategy name."""
        value = self._config["strategy"]
        assert isinstance(value, str)
        return value

    @property
    def extractor(self) -> str:
        """Symbol extraction backend name."""
        value = self._config["extractor"]
        assert isinstance(value, str)
        return value

    @property
    def cache_enabled(self) -> bool:
        value = self._config["cache_enabled"]
        assert isinstance(value, bool)
        return value

    @property
    def cache_dir(self) -> str:
        """Cache directory, relative to the project root unless absolute."""
        value = self._config["cache_dir"]
        assert isinstance(value, str)
        return value

    @property
    def parallel_threshold(self) -> int:
        """Minimum file count before extraction fans out to worker processes."""
        value = self._config["parallel_threshold"]
        assert isinstance(value, int)
        return value

    @property
    def max_workers(self) -> int:
        """Worker process count (0 means one per CPU)."""
        value = self._config["max_workers"]
        assert isinstance(value, int)
        return value

    @property
    def worker_timeout_seconds(self) -> int:
        value = self._config["worker_timeout_seconds"]
        assert isinstance(value, int)
        return value

    @property
    def verify_digest(self) -> bool:
        """Compare content digests when modification time and size match."""
        value = self._config["verify_digest"]
        assert isinstance(value, bool)
        return value

    @property
    def full_scan_patterns(self) -> Optional[List[str]]:
        """Patterns that trigger a full scan.

        Returns:
            None to use the built-in patterns, an empty list to disable
            full-scan triggers, or the configured patterns.
        """
        value = self._config["full_scan_patterns"]
        assert value is None or isinstance(value, list)
        return value

    @property
    def ignore_patterns(self) -> List[str]:
        """Additional file patterns to ignore beyond .gitignore."""
        value = self._config["ignore_patterns"]
        assert isinstance(value, list)
        return value

    @property
    def source_extensions(self) -> List[str]:
        value = self._config["source_extensions"]
        assert isinstance(value, list)
        return value

    @property
    def track_methods(self) -> bool:
        """Whether to maintain the method call graph during builds."""
        value = self._config["track_methods"]
        assert isinstance(value, bool)
        return value


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)
