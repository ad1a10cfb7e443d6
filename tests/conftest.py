from __future__ import annotations

import textwrap
from collections.abc import Iterator
from pathlib import Path

import pytest

from collabication.core.color_scheme import ManualColorScheme
from collabication.core.config import ENV_VARIABLES, ENVIRONMENT_VARIABLE
from collabication.core.settings import ApplicationSettings, CollaborationSettings
from collabication.core.settings_store import SettingsStore
from collabication.core.storage import MemoryKeyValueStore


def _write_text(path: Path, content: str) -> None:
    path.write_text(textwrap.dedent(content).strip() + "\n", encoding="utf-8")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep host COLLABICATION_* variables and stray .env files out of every test."""

    for variable in ENV_VARIABLES:
        monkeypatch.delenv(variable.name, raising=False)
    monkeypatch.delenv(ENVIRONMENT_VARIABLE, raising=False)
    monkeypatch.delenv("COLLABICATION_PREFERS_DARK", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def defaults() -> ApplicationSettings:
    """Compiled defaults with a fixed presence colour."""

    return ApplicationSettings(collaboration=CollaborationSettings(user_color="#336699"))


@pytest.fixture
def storage() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def color_scheme() -> ManualColorScheme:
    return ManualColorScheme(prefers_dark=False)


@pytest.fixture
def store(
    storage: MemoryKeyValueStore,
    color_scheme: ManualColorScheme,
    defaults: ApplicationSettings,
) -> Iterator[SettingsStore]:
    settings_store = SettingsStore(storage, color_scheme=color_scheme, defaults=defaults)
    settings_store.load()
    yield settings_store
    settings_store.close()


@pytest.fixture
def presets_file(tmp_path: Path) -> Path:
    """YAML presets adding a staging environment and tweaking production."""

    path = tmp_path / "presets.yaml"
    _write_text(
        path,
        """
        staging:
          api:
            base_url: "https://staging.example.com/api"
          features:
            agent_assistance: false
        production:
          performance:
            max_concurrent_downloads: 8
        """,
    )
    return path
