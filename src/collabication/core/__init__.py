"""
Core infrastructure for the Collabication desktop client.

Exposes the configuration resolver, the settings store and the storage /
colour-scheme collaborators they depend on.
"""

from .color_scheme import EnvironmentColorScheme, ManualColorScheme
from .config import AppConfig, ConfigError, ConfigResolver, default_config, resolve_config
from .contracts import ColorSchemeSource, KeyValueStore, Subscription
from .merge import UNSET, deep_merge, strip_unset
from .settings import ApplicationSettings, SettingsError
from .settings_store import SettingsStore, StoreState
from .storage import JsonFileKeyValueStore, MemoryKeyValueStore

__all__ = [
    "UNSET",
    "AppConfig",
    "ApplicationSettings",
    "ColorSchemeSource",
    "ConfigError",
    "ConfigResolver",
    "EnvironmentColorScheme",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "ManualColorScheme",
    "MemoryKeyValueStore",
    "SettingsError",
    "SettingsStore",
    "StoreState",
    "Subscription",
    "deep_merge",
    "default_config",
    "resolve_config",
    "strip_unset",
]
