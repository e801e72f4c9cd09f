"""
Configuration management for blobkit.
"""

from blobkit.config.settings import (
    ConfigurationError,
    MappingSettingsProvider,
    Settings,
    SettingsProvider,
    get_settings,
)

__all__ = [
    "ConfigurationError",
    "MappingSettingsProvider",
    "Settings",
    "SettingsProvider",
    "get_settings",
]
