"""
Persisted, observable store for user settings.

The store is created once at startup and handed to every consumer. It loads
the persisted snapshot (falling back to the compiled defaults when the
snapshot is missing or unreadable), swaps in a new immutable
``ApplicationSettings`` on every update or reset, writes the full snapshot
back to durable storage and notifies observers synchronously.

Storage failures never escape the store: reads fall back to defaults and
writes are logged while the in-memory snapshot stays authoritative.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from pydantic import ValidationError

from .contracts import (
    ColorSchemeSource,
    EffectiveTheme,
    KeyValueStore,
    SettingsObserver,
    Subscription,
)
from .settings import ApplicationSettings, SettingsError, aliased_fields, category_field

logger = logging.getLogger(__name__)

SETTINGS_STORAGE_KEY = "collabication-settings"
# Read by the legacy theme consumer; drop once it reads the settings snapshot.
LEGACY_THEME_KEY = "theme"


class StoreState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADED = "loaded"
    MUTATED = "mutated"
    PERSISTED = "persisted"


class SettingsStore:
    """Owner of the live ``ApplicationSettings`` snapshot."""

    def __init__(
        self,
        storage: KeyValueStore,
        *,
        color_scheme: ColorSchemeSource | None = None,
        defaults: ApplicationSettings | None = None,
        storage_key: str = SETTINGS_STORAGE_KEY,
        theme_key: str | None = LEGACY_THEME_KEY,
    ) -> None:
        self._storage = storage
        self._color_scheme = color_scheme
        self._defaults = defaults or ApplicationSettings()
        self._storage_key = storage_key
        self._theme_key = theme_key
        self._settings = self._defaults
        self._state = StoreState.UNINITIALIZED
        self._subscriptions: list[Subscription] = []
        self._detach_color_scheme: Callable[[], None] | None = None
        self.last_write_error: Exception | None = None

    @property
    def settings(self) -> ApplicationSettings:
        """Current snapshot; loads on first access."""
        self._ensure_loaded()
        return self._settings

    @property
    def defaults(self) -> ApplicationSettings:
        return self._defaults

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def storage_key(self) -> str:
        return self._storage_key

    # Lifecycle -----------------------------------------------------------
    def load(self) -> ApplicationSettings:
        """Read the persisted snapshot and merge it over the defaults."""
        self._settings = self._read_snapshot()
        self._state = StoreState.LOADED
        if self._color_scheme is not None and self._detach_color_scheme is None:
            self._detach_color_scheme = self._color_scheme.subscribe(self._on_color_scheme_change)
        self._sync_legacy_theme()
        return self._settings

    def close(self) -> None:
        """Detach from the host colour scheme signal."""
        if self._detach_color_scheme is not None:
            self._detach_color_scheme()
            self._detach_color_scheme = None

    def _ensure_loaded(self) -> None:
        if self._state is StoreState.UNINITIALIZED:
            self.load()

    def _read_snapshot(self) -> ApplicationSettings:
        try:
            raw = self._storage.get(self._storage_key)
        except Exception:
            logger.exception("Reading persisted settings failed; using defaults.")
            return self._defaults
        if raw is None:
            logger.info("No persisted settings under %r; using defaults.", self._storage_key)
            return self._defaults
        try:
            data = json.loads(raw)
        except (TypeError, ValueError, RecursionError) as exc:
            logger.warning("Persisted settings are not valid JSON (%s); using defaults.", exc)
            return self._defaults
        if not isinstance(data, dict):
            logger.warning("Persisted settings root is not an object; using defaults.")
            return self._defaults
        return self._merge_persisted(data)

    def _merge_persisted(self, data: Mapping[str, Any]) -> ApplicationSettings:
        """Shallow-merge each persisted category over its default category."""
        categories: dict[str, Any] = {}
        for name, info in ApplicationSettings.model_fields.items():
            key = info.alias or name
            default = getattr(self._defaults, name)
            persisted = data.get(key)
            if persisted is None:
                categories[name] = default
                continue
            if not isinstance(persisted, dict):
                logger.warning("Persisted %r settings are not an object; using defaults.", key)
                categories[name] = default
                continue
            try:
                categories[name] = type(default).model_validate(
                    {**default.model_dump(by_alias=True), **persisted}
                )
            except ValidationError as exc:
                logger.warning(
                    "Persisted %r settings failed validation (%d error(s)); using defaults.",
                    key,
                    exc.error_count(),
                )
                categories[name] = default
        return ApplicationSettings(**categories)

    # Mutations -----------------------------------------------------------
    def update(self, category: str, changes: Mapping[str, Any]) -> None:
        """Shallow-merge ``changes`` into one category, persist and notify."""
        self._ensure_loaded()
        current = self._settings.category(category)
        model = type(current)
        fields = aliased_fields(model, changes)
        try:
            updated = model.model_validate({**current.model_dump(by_alias=True), **fields})
        except ValidationError as exc:
            raise SettingsError(f"Invalid {category} settings: {exc}") from exc
        self._commit(self._settings.with_category(category, updated))

    def reset(self, category: str | None = None) -> None:
        """Restore one category, or every category, to the compiled defaults."""
        self._ensure_loaded()
        if category is None:
            self._commit(self._defaults)
            return
        field = category_field(category)
        self._commit(self._settings.with_category(field, getattr(self._defaults, field)))

    def _commit(self, settings: ApplicationSettings) -> None:
        self._settings = settings
        self._state = StoreState.MUTATED
        self._persist()
        self._sync_legacy_theme()
        self._notify()

    def _persist(self) -> None:
        try:
            self._storage.set(self._storage_key, self._settings.to_json())
        except Exception as exc:
            self.last_write_error = exc
            logger.warning("Failed to persist settings under %r: %s", self._storage_key, exc)
            return
        self.last_write_error = None
        self._state = StoreState.PERSISTED

    # Theme ---------------------------------------------------------------
    def effective_theme(self) -> EffectiveTheme:
        """Stored theme, with ``system`` resolved against the live host preference."""
        theme = self.settings.ui.theme
        if theme != "system":
            return theme
        if self._color_scheme is not None and self._color_scheme.prefers_dark():
            return "dark"
        return "light"

    def _sync_legacy_theme(self) -> None:
        """Rewrite the legacy key with the effective theme, even if it looks unchanged."""
        if self._theme_key is None:
            return
        try:
            self._storage.set(self._theme_key, self.effective_theme())
        except Exception as exc:
            logger.warning("Failed to write legacy theme key %r: %s", self._theme_key, exc)

    def _on_color_scheme_change(self) -> None:
        if self._settings.ui.theme != "system":
            return
        logger.debug(
            "System color scheme changed; effective theme is now %s", self.effective_theme()
        )
        self._sync_legacy_theme()
        self._notify()

    # Observation ---------------------------------------------------------
    def subscribe(self, observer: SettingsObserver) -> Subscription:
        """Register ``observer`` to receive each new snapshot."""
        subscription = Subscription(observer=observer)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def _notify(self) -> None:
        snapshot = self._settings
        for subscription in list(self._subscriptions):
            try:
                subscription.observer(snapshot)
            except Exception:
                logger.exception("Settings observer %s failed.", subscription.observer)


__all__ = ["LEGACY_THEME_KEY", "SETTINGS_STORAGE_KEY", "SettingsStore", "StoreState"]
