"""
Collabication - collaborative document editor

Configuration core: layered application configuration resolution and
persisted user settings.
"""

__version__ = "0.1.0"

from collabication.core import (
    AppConfig,
    ApplicationSettings,
    ConfigError,
    ConfigResolver,
    SettingsStore,
)

__all__ = [
    "AppConfig",
    "ApplicationSettings",
    "ConfigError",
    "ConfigResolver",
    "SettingsStore",
]
