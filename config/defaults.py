"""
Default configuration values for artifact-sync.

Centralized defaults that can be overridden by environment variables or config files.
"""

from typing import Any, Dict

from core.models.config import CONFIG_DIR_NAME

# Global default settings
DEFAULT_SETTINGS = {
    # Source / artifact pairing
    "sync": {
        "source_extension": ".py",
        "artifact_extension": ".asset",
        "base_classes": ["Behaviour"],
        "link_field": "source_link"
    },

    # Discovery
    "discovery": {
        "ignored_directories": [
            ".git", "__pycache__", ".pytest_cache", ".venv", "venv",
            "node_modules", "build", "dist", CONFIG_DIR_NAME
        ]
    },

    # Processing
    "processing": {
        "debounce_ms": 500,
        "max_workers": 1
    }
}

# Environment variable mappings
ENV_VAR_MAPPING = {
    'ARTIFACT_SYNC_SOURCE_EXTENSION': 'source_extension',
    'ARTIFACT_SYNC_ARTIFACT_EXTENSION': 'artifact_extension',
    'ARTIFACT_SYNC_BASE_CLASSES': 'base_classes',
    'ARTIFACT_SYNC_LINK_FIELD': 'link_field',
    'ARTIFACT_SYNC_DEBOUNCE_MS': 'debounce_ms',
    'ARTIFACT_SYNC_MAX_WORKERS': 'max_workers'
}


def get_default_sync_config() -> Dict[str, Any]:
    """Get default project configuration"""
    return {
        'source_extension': DEFAULT_SETTINGS['sync']['source_extension'],
        'artifact_extension': DEFAULT_SETTINGS['sync']['artifact_extension'],
        'base_classes': list(DEFAULT_SETTINGS['sync']['base_classes']),
        'link_field': DEFAULT_SETTINGS['sync']['link_field'],
        'ignored_directories': list(DEFAULT_SETTINGS['discovery']['ignored_directories']),
        'debounce_ms': DEFAULT_SETTINGS['processing']['debounce_ms'],
        'max_workers': DEFAULT_SETTINGS['processing']['max_workers']
    }
