"""
Contracts for the collaborators the configuration core talks to.

The settings store never touches a concrete storage backend or desktop
preference API directly; it depends on the small protocols below so hosts
can inject their own implementations (and tests can inject fakes).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .settings import ApplicationSettings

ThemeName = Literal["light", "dark", "system"]
EffectiveTheme = Literal["light", "dark"]
SettingsCategory = Literal["editor", "github", "collaboration", "ui", "keyboardShortcuts"]

SettingsObserver = Callable[["ApplicationSettings"], None]


@runtime_checkable
class KeyValueStore(Protocol):
    """Durable string key/value storage (the desktop equivalent of localStorage)."""

    def get(self, key: str) -> str | None:
        """Return the stored string or ``None`` when the key is absent."""

    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``; may raise ``OSError`` on failure."""


@runtime_checkable
class ColorSchemeSource(Protocol):
    """Host signal exposing the live light/dark preference."""

    def prefers_dark(self) -> bool:
        """Return the current preference; must not be cached by callers."""

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a payload-less change callback and return its unsubscribe function."""


@dataclass(frozen=True, eq=False)
class Subscription:
    """Handle for a settings-change observer registration."""

    observer: SettingsObserver


__all__ = [
    "ColorSchemeSource",
    "EffectiveTheme",
    "KeyValueStore",
    "SettingsCategory",
    "SettingsObserver",
    "Subscription",
    "ThemeName",
]
