"""Tests for the persisted, observable settings store."""

from __future__ import annotations

import json

import pytest

from collabication.core.color_scheme import ManualColorScheme
from collabication.core.settings import ApplicationSettings, SettingsError
from collabication.core.settings_store import (
    LEGACY_THEME_KEY,
    SETTINGS_STORAGE_KEY,
    SettingsStore,
    StoreState,
)
from collabication.core.storage import MemoryKeyValueStore


class FlakyStorage(MemoryKeyValueStore):
    """Memory store whose reads or writes can be switched to fail."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        super().__init__(initial)
        self.fail_reads = False
        self.fail_writes = False

    def get(self, key: str) -> str | None:
        if self.fail_reads:
            raise OSError("disk unavailable")
        return super().get(key)

    def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        super().set(key, value)


def _open(
    storage: MemoryKeyValueStore,
    defaults: ApplicationSettings,
    color_scheme: ManualColorScheme | None = None,
) -> SettingsStore:
    store = SettingsStore(storage, color_scheme=color_scheme, defaults=defaults)
    store.load()
    return store


def test_missing_snapshot_loads_defaults(
    store: SettingsStore, storage: MemoryKeyValueStore, defaults: ApplicationSettings
) -> None:
    assert store.settings == defaults
    assert store.state is StoreState.LOADED
    assert storage.get(SETTINGS_STORAGE_KEY) is None
    assert storage.get(LEGACY_THEME_KEY) == "light"


def test_partial_snapshot_merges_per_category(defaults: ApplicationSettings) -> None:
    storage = MemoryKeyValueStore(
        {SETTINGS_STORAGE_KEY: '{"editor":{"fontSize":20},"ui":{"theme":"dark"}}'}
    )
    settings = _open(storage, defaults).settings

    assert settings.editor.font_size == 20
    assert settings.editor.model_dump(exclude={"font_size"}) == defaults.editor.model_dump(
        exclude={"font_size"}
    )
    assert settings.ui.theme == "dark"
    assert settings.ui.model_dump(exclude={"theme"}) == defaults.ui.model_dump(exclude={"theme"})
    assert settings.github == defaults.github
    assert settings.collaboration == defaults.collaboration
    assert settings.keyboard_shortcuts == defaults.keyboard_shortcuts


@pytest.mark.parametrize("raw", ["{not json", "[1, 2, 3]", '"settings"', "null"])
def test_unreadable_snapshot_falls_back_to_defaults(
    raw: str, defaults: ApplicationSettings
) -> None:
    storage = MemoryKeyValueStore({SETTINGS_STORAGE_KEY: raw})
    store = _open(storage, defaults)
    assert store.settings == defaults
    assert store.state is StoreState.LOADED


def test_read_failure_falls_back_to_defaults(defaults: ApplicationSettings) -> None:
    storage = FlakyStorage({SETTINGS_STORAGE_KEY: '{"ui":{"theme":"dark"}}'})
    storage.fail_reads = True
    assert _open(storage, defaults).settings == defaults


def test_invalid_category_falls_back_alone(defaults: ApplicationSettings) -> None:
    snapshot = {
        "editor": {"fontSize": "enormous"},
        "github": "not-an-object",
        "ui": {"theme": "dark", "removedSetting": True},
        "keyboardShortcuts": {"enableShortcuts": False},
    }
    storage = MemoryKeyValueStore({SETTINGS_STORAGE_KEY: json.dumps(snapshot)})
    settings = _open(storage, defaults).settings

    assert settings.editor == defaults.editor
    assert settings.github == defaults.github
    assert settings.ui.theme == "dark"
    assert "removedSetting" not in settings.ui.model_dump(by_alias=True)
    assert settings.keyboard_shortcuts.enable_shortcuts is False


def test_update_is_isolated_to_one_category(
    store: SettingsStore, storage: MemoryKeyValueStore
) -> None:
    before = store.settings
    store.update("editor", {"fontSize": 16})
    after = store.settings

    assert after.editor.font_size == 16
    assert after.editor.model_dump(exclude={"font_size"}) == before.editor.model_dump(
        exclude={"font_size"}
    )
    assert after.github == before.github
    assert after.collaboration == before.collaboration
    assert after.ui == before.ui
    assert after.keyboard_shortcuts == before.keyboard_shortcuts
    assert before.editor.font_size == 14
    assert store.state is StoreState.PERSISTED
    assert json.loads(storage.get(SETTINGS_STORAGE_KEY))["editor"]["fontSize"] == 16


def test_update_accepts_attribute_names(store: SettingsStore) -> None:
    store.update("keyboard_shortcuts", {"show_shortcuts_help": False})
    assert store.settings.keyboard_shortcuts.show_shortcuts_help is False


def test_invalid_update_is_rejected_without_side_effects(
    store: SettingsStore, storage: MemoryKeyValueStore
) -> None:
    received: list[ApplicationSettings] = []
    store.subscribe(received.append)
    before = store.settings

    with pytest.raises(SettingsError):
        store.update("editor", {"tabSize": 0})
    with pytest.raises(SettingsError):
        store.update("ui", {"theme": "sepia"})
    with pytest.raises(SettingsError):
        store.update("ui", {"notAField": 1})
    with pytest.raises(SettingsError):
        store.update("plugins", {"enabled": True})

    assert store.settings == before
    assert received == []
    assert storage.get(SETTINGS_STORAGE_KEY) is None
    assert store.state is StoreState.LOADED


def test_reset_category_restores_only_that_category(
    store: SettingsStore, defaults: ApplicationSettings
) -> None:
    store.update("ui", {"theme": "dark", "sidebarWidth": 400})
    store.update("github", {"autoPush": True})
    before_reset = store.settings

    store.reset("ui")

    assert store.settings.ui == defaults.ui
    assert store.settings.github == before_reset.github
    assert store.settings.editor == before_reset.editor
    assert store.settings.collaboration == before_reset.collaboration
    assert store.settings.keyboard_shortcuts == before_reset.keyboard_shortcuts


def test_reset_everything(
    store: SettingsStore, storage: MemoryKeyValueStore, defaults: ApplicationSettings
) -> None:
    store.update("editor", {"spellCheck": True})
    store.update("collaboration", {"userName": "Ada"})

    store.reset()

    assert store.settings == defaults
    assert ApplicationSettings.model_validate_json(storage.get(SETTINGS_STORAGE_KEY)) == defaults


def test_persisted_snapshot_round_trips(
    storage: MemoryKeyValueStore, defaults: ApplicationSettings
) -> None:
    first = _open(storage, defaults)
    first.update("editor", {"fontSize": 18, "defaultPreferredType": "markdown"})
    first.update("collaboration", {"userName": "Grace", "userColor": "#ff8800"})
    first.update("ui", {"theme": "dark"})
    loaded = first.settings

    second = _open(storage, ApplicationSettings())
    assert second.settings == loaded

    storage.set(SETTINGS_STORAGE_KEY, second.settings.to_json())
    assert _open(storage, ApplicationSettings()).settings == loaded


def test_snapshot_uses_camel_case_keys(store: SettingsStore, storage: MemoryKeyValueStore) -> None:
    store.update("keyboardShortcuts", {"customizeShortcuts": False})
    payload = json.loads(storage.get(SETTINGS_STORAGE_KEY))
    assert set(payload) == {"editor", "github", "collaboration", "ui", "keyboardShortcuts"}
    assert payload["keyboardShortcuts"]["customizeShortcuts"] is False
    assert "autoSaveInterval" in payload["editor"]


def test_write_failure_keeps_memory_state(defaults: ApplicationSettings) -> None:
    storage = FlakyStorage()
    store = _open(storage, defaults)
    received: list[ApplicationSettings] = []
    store.subscribe(received.append)
    storage.fail_writes = True

    store.update("editor", {"lineNumbers": False})

    assert store.settings.editor.line_numbers is False
    assert store.state is StoreState.MUTATED
    assert isinstance(store.last_write_error, OSError)
    assert received == [store.settings]

    storage.fail_writes = False
    store.reset("editor")
    assert store.state is StoreState.PERSISTED
    assert store.last_write_error is None


def test_observers_receive_each_snapshot_synchronously(store: SettingsStore) -> None:
    received: list[ApplicationSettings] = []
    subscription = store.subscribe(received.append)

    store.update("editor", {"tabSize": 4})
    store.reset("editor")
    store.unsubscribe(subscription)
    store.update("editor", {"tabSize": 8})

    assert [snapshot.editor.tab_size for snapshot in received] == [4, 2]


def test_failing_observer_does_not_block_others(store: SettingsStore) -> None:
    received: list[ApplicationSettings] = []

    def broken(_settings: ApplicationSettings) -> None:
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.subscribe(received.append)
    store.update("ui", {"showMinimap": False})

    assert len(received) == 1
    assert received[0].ui.show_minimap is False


def test_effective_theme_tracks_live_preference(
    store: SettingsStore, color_scheme: ManualColorScheme
) -> None:
    assert store.effective_theme() == "light"
    color_scheme.set_prefers_dark(True)
    assert store.effective_theme() == "dark"

    store.update("ui", {"theme": "light"})
    assert store.effective_theme() == "light"


def test_system_preference_change_notifies_without_persisting_theme(
    store: SettingsStore, storage: MemoryKeyValueStore, color_scheme: ManualColorScheme
) -> None:
    received: list[ApplicationSettings] = []
    store.subscribe(received.append)

    color_scheme.set_prefers_dark(True)

    assert len(received) == 1
    assert received[0].ui.theme == "system"
    assert storage.get(SETTINGS_STORAGE_KEY) is None
    assert storage.get(LEGACY_THEME_KEY) == "dark"


def test_preference_change_ignored_for_explicit_theme(
    store: SettingsStore, storage: MemoryKeyValueStore, color_scheme: ManualColorScheme
) -> None:
    store.update("ui", {"theme": "light"})
    received: list[ApplicationSettings] = []
    store.subscribe(received.append)

    color_scheme.set_prefers_dark(True)

    assert received == []
    assert storage.get(LEGACY_THEME_KEY) == "light"


def test_legacy_theme_key_follows_theme_changes(
    store: SettingsStore, storage: MemoryKeyValueStore
) -> None:
    store.update("ui", {"theme": "dark"})
    assert storage.get(LEGACY_THEME_KEY) == "dark"
    store.reset("ui")
    assert storage.get(LEGACY_THEME_KEY) == "light"


def test_close_detaches_color_scheme(
    store: SettingsStore, color_scheme: ManualColorScheme
) -> None:
    received: list[ApplicationSettings] = []
    store.subscribe(received.append)
    store.close()

    color_scheme.set_prefers_dark(True)

    assert received == []


def test_store_loads_lazily(storage: MemoryKeyValueStore, defaults: ApplicationSettings) -> None:
    storage.set(SETTINGS_STORAGE_KEY, '{"github":{"autoPush":true}}')
    store = SettingsStore(storage, defaults=defaults, theme_key=None)
    assert store.state is StoreState.UNINITIALIZED

    assert store.settings.github.auto_push is True
    assert store.state is StoreState.LOADED
    assert store.effective_theme() == "light"
    assert storage.get(LEGACY_THEME_KEY) is None


def test_deeply_nested_snapshot_falls_back_to_defaults(defaults: ApplicationSettings) -> None:
    storage = MemoryKeyValueStore({SETTINGS_STORAGE_KEY: "[" * 200000})
    store = SettingsStore(storage, defaults=defaults)

    assert store.load() == defaults
    assert store.state is StoreState.LOADED


def test_legacy_theme_key_is_rewritten_after_external_change(
    store: SettingsStore, storage: MemoryKeyValueStore
) -> None:
    storage.set(LEGACY_THEME_KEY, "dark")

    store.update("editor", {"fontSize": 15})

    assert storage.get(LEGACY_THEME_KEY) == "light"
