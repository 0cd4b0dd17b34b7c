"""
Configuration management for artifact-sync

Handles loading, validation, and environment overrides of project configuration.
"""

from .loader import ConfigurationLoader
from .defaults import DEFAULT_SETTINGS

__all__ = ["ConfigurationLoader", "DEFAULT_SETTINGS"]
