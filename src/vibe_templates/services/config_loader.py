"""
Configuration Loader Service

Loads server configuration from vibe_templates.json in the project root.
Environment variables always take precedence over config file values.

Config file location (in order of precedence):
1. VIBE_TEMPLATES_PROJECT_ROOT/vibe_templates.json (if set)
2. CWD/vibe_templates.json

Supported settings in vibe_templates.json:
{
    "templates_dir": "./templates",        // -> VIBE_TEMPLATES_DIR
    "log_level": "info",                   // -> VIBE_TEMPLATES_LOG_LEVEL
    "embedding_provider": "auto",          // -> VIBE_TEMPLATES_EMBEDDING_PROVIDER
                                           //    (auto, openai, voyage, local, hash, none)
    "embedding_model": "text-embedding-3-small",  // -> VIBE_TEMPLATES_EMBEDDING_MODEL
    "embedding_batch_size": 10,            // -> VIBE_TEMPLATES_EMBEDDING_BATCH_SIZE
    "embedding_cache_size": 1000,          // -> VIBE_TEMPLATES_EMBEDDING_CACHE_SIZE
    "eager_init": true                     // -> VIBE_TEMPLATES_EAGER_INIT
}

Provider credentials are read from OPENAI_API_KEY / VOYAGE_API_KEY only.
"""

import json
import os
from pathlib import Path
from typing import Dict, Any, Optional

from ..logging_config import configure_logger

logger = configure_logger(__name__)

CONFIG_FILENAME = "vibe_templates.json"


class ConfigLoader:
    """
    Loads configuration from vibe_templates.json file.

    ::: This is-in-layer Service-Layer.
    ::: This is a loader.
    ::: This is stateless.

    Priority: Environment variables > vibe_templates.json > defaults
    """

    # Mapping from vibe_templates.json keys to environment variable names
    CONFIG_KEY_TO_ENV = {
        "templates_dir": "VIBE_TEMPLATES_DIR",
        "log_level": "VIBE_TEMPLATES_LOG_LEVEL",
        "embedding_provider": "VIBE_TEMPLATES_EMBEDDING_PROVIDER",
        "embedding_model": "VIBE_TEMPLATES_EMBEDDING_MODEL",
        "embedding_batch_size": "VIBE_TEMPLATES_EMBEDDING_BATCH_SIZE",
        "embedding_cache_size": "VIBE_TEMPLATES_EMBEDDING_CACHE_SIZE",
        "eager_init": "VIBE_TEMPLATES_EAGER_INIT",
    }

    DEFAULTS: Dict[str, Any] = {
        "templates_dir": "./templates",
        "log_level": "info",
        "embedding_provider": "auto",
        "embedding_model": "",  # empty = provider default
        "embedding_batch_size": 10,
        "embedding_cache_size": 1000,
        "eager_init": True,
    }

    def __init__(self):
        self._config: Dict[str, Any] = {}
        self._config_path: Optional[Path] = None
        self._project_root: Optional[Path] = None
        self._loaded = False

    def load(self, project_root: Optional[Path] = None) -> bool:
        """
        Load configuration from vibe_templates.json.

        Args:
            project_root: Project root directory. If None, uses
                VIBE_TEMPLATES_PROJECT_ROOT or CWD.

        Returns:
            True if config file was found and loaded, False otherwise.
        """
        if self._loaded:
            return self._config_path is not None

        if project_root is None:
            env_root = os.getenv("VIBE_TEMPLATES_PROJECT_ROOT")
            project_root = Path(env_root) if env_root else Path.cwd()
        self._project_root = Path(project_root)

        config_path = self._project_root / CONFIG_FILENAME
        if config_path.exists():
            try:
                with open(config_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning("Invalid JSON in %s: %s", config_path, e)
            else:
                if isinstance(data, dict):
                    self._config = data
                    self._config_path = config_path
                    logger.info("Loaded config from: %s", config_path)
                else:
                    logger.warning("Ignoring %s: top-level value must be an object", config_path)

        self._loaded = True
        return self._config_path is not None

    def get(self, key: str, default: Any = None) -> Any:
        """Get a raw config file value."""
        return self._config.get(key, default)

    def get_template_config(self) -> Dict[str, Any]:
        """
        Get the merged server configuration with defaults applied.

        Returns:
            Dictionary with all settings; templates_dir is resolved to an
            absolute Path against the project root.
        """
        if not self._loaded:
            self.load()

        merged: Dict[str, Any] = {}
        for key, default_value in self.DEFAULTS.items():
            env_value = os.getenv(self.CONFIG_KEY_TO_ENV[key])
            if env_value is not None and env_value != "":
                merged[key] = _coerce(env_value, default_value)
            elif key in self._config:
                merged[key] = _coerce(self._config[key], default_value)
            else:
                merged[key] = default_value

        templates_dir = Path(os.path.expanduser(str(merged["templates_dir"])))
        if not templates_dir.is_absolute():
            templates_dir = (self._project_root or Path.cwd()) / templates_dir
        merged["templates_dir"] = templates_dir.resolve()
        merged["embedding_provider"] = str(merged["embedding_provider"]).lower()
        return merged

    @property
    def config_path(self) -> Optional[Path]:
        """Path to the loaded config file, or None if not loaded."""
        return self._config_path

    @property
    def project_root(self) -> Optional[Path]:
        return self._project_root

    @property
    def config(self) -> Dict[str, Any]:
        """The loaded configuration dictionary."""
        return self._config.copy()


def _coerce(value: Any, default_value: Any) -> Any:
    """Convert a config/env value to the type of its default."""
    if isinstance(default_value, bool):
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ('true', '1', 'yes', 'on')
    if isinstance(default_value, int):
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring non-integer config value %r", value)
            return default_value
    return value


def load_config(project_root: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load vibe_templates.json and return the merged configuration.

    Args:
        project_root: Project root directory. If None, auto-detects.
    """
    loader = ConfigLoader()
    loader.load(project_root)
    return loader.get_template_config()
