"""Host light/dark preference sources."""

from __future__ import annotations

import contextlib
import logging
import os
from collections.abc import Callable

logger = logging.getLogger(__name__)

PREFERS_DARK_VARIABLE = "COLLABICATION_PREFERS_DARK"
_TRUTHY = {"1", "true", "yes", "on", "dark"}


class ManualColorScheme:
    """
    Preference held in memory and changed explicitly by the host.

    ``set_prefers_dark`` notifies subscribers only when the value changes;
    ``notify`` can be called directly when the host learns of a change some
    other way.
    """

    def __init__(self, prefers_dark: bool = False) -> None:
        self._prefers_dark = prefers_dark
        self._callbacks: list[Callable[[], None]] = []

    def prefers_dark(self) -> bool:
        return self._prefers_dark

    def set_prefers_dark(self, value: bool) -> None:
        if value == self._prefers_dark:
            return
        self._prefers_dark = value
        self.notify()

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        self._callbacks.append(callback)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._callbacks.remove(callback)

        return _unsubscribe

    def notify(self) -> None:
        logger.debug("Color scheme changed; notifying %d listener(s)", len(self._callbacks))
        for callback in list(self._callbacks):
            callback()


class EnvironmentColorScheme(ManualColorScheme):
    """Reads ``COLLABICATION_PREFERS_DARK`` on every query."""

    def prefers_dark(self) -> bool:
        return os.environ.get(PREFERS_DARK_VARIABLE, "").strip().lower() in _TRUTHY


__all__ = ["EnvironmentColorScheme", "ManualColorScheme", "PREFERS_DARK_VARIABLE"]
