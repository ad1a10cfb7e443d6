"""
User-editable application settings.

Each category is a flat, frozen Pydantic model. The persisted snapshot uses
the camelCase field names of the desktop client (``fontSize``,
``keyboardShortcuts``), so every model carries a camelCase alias generator and
still accepts the snake_case attribute names.
"""

from __future__ import annotations

import random
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SettingsError(ValueError):
    """Raised for unknown categories/fields or invalid values passed to the store."""


def random_user_color() -> str:
    """Random ``#rrggbb`` presence colour."""
    return f"#{random.randrange(0x1000000):06x}"


class _SettingsCategory(BaseModel):
    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class EditorSettings(_SettingsCategory):
    """Document editor behaviour."""

    default_preferred_type: Literal["automatic", "markdown", "richText", "code"] = "automatic"
    auto_save: bool = True
    auto_save_interval: int = Field(default=5000, ge=500, description="Milliseconds.")
    font_size: int = Field(default=14, ge=8, le=72)
    tab_size: int = Field(default=2, ge=1, le=16)
    line_wrapping: bool = True
    line_numbers: bool = True
    spell_check: bool = False


class GitHubSettings(_SettingsCategory):
    """Repository sync behaviour."""

    auto_push: bool = False
    auto_pull: bool = True
    sync_interval: int = Field(default=300000, ge=1000, description="Milliseconds.")
    default_commit_message: str = "Update document"
    show_file_status_indicators: bool = True


class CollaborationSettings(_SettingsCategory):
    """Identity shown to other collaborators."""

    user_name: str = ""
    user_color: str = Field(default_factory=random_user_color, pattern=r"^#[0-9a-fA-F]{6}$")
    show_presence_indicators: bool = True
    auto_connect: bool = True
    show_offline_indicator: bool = True


class UISettings(_SettingsCategory):
    theme: Literal["light", "dark", "system"] = "system"
    sidebar_width: int = Field(default=250, ge=0)
    right_sidebar_width: int = Field(default=300, ge=0)
    font_size: Literal["small", "medium", "large"] = "medium"
    show_minimap: bool = True
    show_status_bar: bool = True


class KeyboardShortcutSettings(_SettingsCategory):
    enable_shortcuts: bool = True
    show_shortcuts_help: bool = True
    customize_shortcuts: bool = True


class ApplicationSettings(BaseModel):
    """Immutable snapshot of every settings category."""

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    editor: EditorSettings = Field(default_factory=EditorSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    collaboration: CollaborationSettings = Field(default_factory=CollaborationSettings)
    ui: UISettings = Field(default_factory=UISettings)
    keyboard_shortcuts: KeyboardShortcutSettings = Field(default_factory=KeyboardShortcutSettings)

    def category(self, name: str) -> _SettingsCategory:
        return getattr(self, category_field(name))

    def with_category(self, name: str, value: _SettingsCategory) -> ApplicationSettings:
        """Return a copy with one category replaced."""
        return self.model_copy(update={category_field(name): value})

    def to_json(self) -> str:
        """Serialized snapshot in the persisted (camelCase) layout."""
        return self.model_dump_json(by_alias=True)


# Persisted category key -> attribute name.
CATEGORY_FIELDS: dict[str, str] = {
    (info.alias or name): name for name, info in ApplicationSettings.model_fields.items()
}


def category_field(name: str) -> str:
    """Resolve a category given by persisted key or attribute name."""
    if name in CATEGORY_FIELDS:
        return CATEGORY_FIELDS[name]
    if name in CATEGORY_FIELDS.values():
        return name
    raise SettingsError(
        f"Unknown settings category {name!r}. Available: {sorted(CATEGORY_FIELDS)}"
    )


def category_key(name: str) -> str:
    """Persisted (camelCase) key of a category."""
    field = category_field(name)
    return next(key for key, value in CATEGORY_FIELDS.items() if value == field)


def aliased_fields(model: type[_SettingsCategory], changes: Mapping[str, Any]) -> dict[str, Any]:
    """
    Rewrite ``changes`` to the persisted (camelCase) field names of ``model``.

    Raises ``SettingsError`` for keys the category does not define.
    """

    lookup: dict[str, str] = {}
    for name, info in model.model_fields.items():
        alias = info.alias or name
        lookup[name] = alias
        lookup[alias] = alias
    unknown = sorted(str(key) for key in changes if key not in lookup)
    if unknown:
        raise SettingsError(f"Unknown {model.__name__} field(s): {', '.join(unknown)}")
    return {lookup[key]: value for key, value in changes.items()}


__all__ = [
    "CATEGORY_FIELDS",
    "ApplicationSettings",
    "CollaborationSettings",
    "EditorSettings",
    "GitHubSettings",
    "KeyboardShortcutSettings",
    "SettingsError",
    "UISettings",
    "aliased_fields",
    "category_field",
    "category_key",
    "random_user_color",
]
