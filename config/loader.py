"""
Configuration loading and management.

Loads the per-project JSON configuration, applies environment overrides and
caches the result per project root.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging

from pydantic import ValidationError

from core.models.config import SyncConfig, GlobalSettings
from .defaults import ENV_VAR_MAPPING, get_default_sync_config

logger = logging.getLogger(__name__)


class ConfigurationLoader:
    """Load and manage project configurations"""

    def __init__(self, global_settings: Optional[GlobalSettings] = None):
        self.global_settings = global_settings or GlobalSettings()
        self.config_cache: Dict[str, SyncConfig] = {}

    def load_config(self, root: Union[str, Path]) -> SyncConfig:
        """Load or create the configuration for the project at ``root``"""
        root = Path(root).resolve()

        cache_key = str(root)
        if cache_key in self.config_cache:
            return self.config_cache[cache_key]

        config_file = SyncConfig(root=root).get_config_file()

        if config_file.exists():
            config = self._load_existing_config(config_file, root)
        else:
            config = self._create_config(root)

        self.config_cache[cache_key] = config
        return config

    def _load_existing_config(self, config_file: Path, root: Path) -> SyncConfig:
        """Load existing configuration file with validation"""
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)

            if not isinstance(data, dict):
                raise ValueError("configuration must be a JSON object")

            # Missing keys take their defaults
            config_data = get_default_sync_config()
            config_data.update(data)
            config_data = self._apply_env_overrides(config_data)
            config_data['root'] = root

            return SyncConfig(**config_data)

        except (json.JSONDecodeError, ValueError, ValidationError) as e:
            logger.error(f"Failed to load config from {config_file}: {e}")
            # Fall back to defaults
            return self._create_config(root)

    def _create_config(self, root: Path) -> SyncConfig:
        """Create configuration from defaults"""
        config_data = get_default_sync_config()
        config_data = self._apply_env_overrides(config_data)
        config_data['root'] = root
        return SyncConfig(**config_data)

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration"""
        for env_var, config_path in ENV_VAR_MAPPING.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                self._set_nested_value(config_data, config_path, env_value)

        return config_data

    def _set_nested_value(self, data: Dict[str, Any], path: str, value: str) -> None:
        """Set nested dictionary value using dot notation path"""
        keys = path.split('.')
        current = data

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        final_key = keys[-1]
        if isinstance(current.get(final_key), list):
            # List settings are given comma separated
            current[final_key] = [item.strip() for item in value.split(',') if item.strip()]
        else:
            current[final_key] = self._convert_env_value(value)

    def _convert_env_value(self, value: str) -> Any:
        """Convert environment variable string to appropriate type"""
        if value.lower() in ('true', 'yes', 'on'):
            return True
        elif value.lower() in ('false', 'no', 'off'):
            return False

        try:
            if '.' in value:
                return float(value)
            else:
                return int(value)
        except ValueError:
            pass

        return value

    def save_config(self, config: SyncConfig) -> bool:
        """Save project configuration to disk"""
        try:
            config_file = config.get_config_file()
            config.get_config_dir().mkdir(parents=True, exist_ok=True)

            # The root is implied by the file location
            config_data = config.to_dict()
            config_data.pop('root', None)

            with open(config_file, 'w', encoding='utf-8') as f:
                json.dump(config_data, f, indent=2, ensure_ascii=False)

            logger.info(f"Saved configuration to {config_file}")

            self.config_cache[str(config.root)] = config
            return True

        except Exception as e:
            logger.error(f"Failed to save config for {config.root}: {e}")
            return False

    def clear_cache(self) -> None:
        """Clear configuration cache"""
        self.config_cache.clear()
