"""
CLI entrypoint for inspecting the resolved configuration and managing user settings.

It resolves the layered configuration exactly as the desktop client does at
startup (defaults, environment preset, ``COLLABICATION_*`` overrides) and
opens the settings store on the JSON storage file, so settings can be shown,
changed or reset without launching the editor.
"""

from __future__ import annotations

import argparse
import json
import logging
import logging.handlers
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import yaml

from .core.color_scheme import EnvironmentColorScheme
from .core.config import ConfigError, ConfigResolver
from .core.settings import SettingsError, category_key
from .core.settings_store import SettingsStore
from .core.storage import JsonFileKeyValueStore

LOGGER = logging.getLogger(__name__)
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_FILE_MAX_BYTES = 2 * 1024 * 1024
LOG_FILE_BACKUPS = 2


def _attach_log_file(log_file: Path) -> logging.Handler | None:
    """Route root logging to ``log_file`` as well; reuses a handler already writing there."""

    target = log_file.expanduser().resolve()
    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if (
            isinstance(handler, logging.handlers.RotatingFileHandler)
            and Path(handler.baseFilename) == target
        ):
            return handler

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            target,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
    except OSError as exc:
        LOGGER.warning("Not logging to %s: %s", target, exc)
        return None
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)
    return handler


def configure_logging(level: str | int, log_file: Path | None = None) -> None:
    if isinstance(level, int):
        numeric_level = level
    else:
        numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    logging.getLogger().setLevel(numeric_level)
    if log_file is not None:
        _attach_log_file(log_file)


def parse_value(text: str) -> Any:
    """Interpret a ``key=value`` CLI value as JSON, falling back to the raw string."""
    try:
        return json.loads(text)
    except ValueError:
        return text


def parse_assignments(assignments: Sequence[str]) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    for item in assignments:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise SettingsError(f"Expected KEY=VALUE, got {item!r}")
        changes[key.strip()] = parse_value(value)
    return changes


def render(data: Any, fmt: str) -> str:
    if fmt == "yaml":
        return yaml.safe_dump(data, sort_keys=False).rstrip()
    return json.dumps(data, indent=2)


def _open_store(args: argparse.Namespace) -> SettingsStore:
    store = SettingsStore(
        JsonFileKeyValueStore(args.storage),
        color_scheme=EnvironmentColorScheme(),
    )
    store.load()
    return store


def _run_config(args: argparse.Namespace, resolver: ConfigResolver) -> int:
    data = resolver.config.model_dump(mode="json", by_alias=True)
    if args.section:
        if args.section not in data:
            LOGGER.error("Unknown config section %r. Available: %s", args.section, sorted(data))
            return 2
        data = data[args.section]
    print(render(data, args.format))
    return 0


def _run_settings(args: argparse.Namespace) -> int:
    store = _open_store(args)
    try:
        if args.settings_command == "set":
            store.update(args.category, parse_assignments(args.assignments))
        elif args.settings_command == "reset":
            store.reset(args.category)
        data = store.settings.model_dump(mode="json", by_alias=True)
        if args.category:
            data = data[category_key(args.category)]
        print(render(data, args.format))
    finally:
        store.close()
    if store.last_write_error is not None:
        LOGGER.warning("Settings were applied in memory only: %s", store.last_write_error)
        return 1
    return 0


def _run_theme(args: argparse.Namespace) -> int:
    store = _open_store(args)
    try:
        print(store.effective_theme())
    finally:
        store.close()
    return 0


def parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Collabication configuration and settings tool.")
    parser.add_argument(
        "--env",
        default=None,
        help="Environment preset to resolve (default: $COLLABICATION_ENV or development).",
    )
    parser.add_argument(
        "--presets-file",
        type=Path,
        default=None,
        help="YAML/TOML/JSON file with extra per-environment presets.",
    )
    parser.add_argument(
        "--storage",
        type=Path,
        default=None,
        help="JSON storage file for user settings (default: ~/.collabication/storage.json).",
    )
    parser.add_argument(
        "--format",
        choices=("json", "yaml"),
        default="json",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Python logging level (default: the resolved logging.level).",
    )
    parser.add_argument("--log-file", type=Path, default=None, help="Optional rotating log file.")

    commands = parser.add_subparsers(dest="command", required=True)
    config_parser = commands.add_parser("config", help="Print the resolved configuration.")
    config_parser.add_argument("section", nargs="?", default=None, help="Only print one section.")

    settings_parser = commands.add_parser("settings", help="Show or change user settings.")
    settings_commands = settings_parser.add_subparsers(dest="settings_command", required=True)
    show_parser = settings_commands.add_parser("show", help="Print current settings.")
    show_parser.add_argument("category", nargs="?", default=None)
    set_parser = settings_commands.add_parser("set", help="Update fields of one category.")
    set_parser.add_argument("category")
    set_parser.add_argument("assignments", nargs="+", metavar="KEY=VALUE")
    reset_parser = settings_commands.add_parser("reset", help="Reset one or all categories.")
    reset_parser.add_argument("category", nargs="?", default=None)

    commands.add_parser("theme", help="Print the effective light/dark theme.")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level or "WARNING", args.log_file)
    try:
        resolver = ConfigResolver(environment=args.env, presets_file=args.presets_file)
        if args.log_level is None:
            configure_logging(resolver.logging.python_level)
        if args.command == "config":
            return _run_config(args, resolver)
        if args.command == "settings":
            return _run_settings(args)
        return _run_theme(args)
    except ConfigError as exc:
        LOGGER.error("Configuration failed: %s", exc)
        return 2
    except SettingsError as exc:
        LOGGER.error("Settings rejected: %s", exc)
        return 2
    except Exception:  # pragma: no cover - surfaced to operator
        LOGGER.exception("Collabication tool crashed.")
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())


__all__ = ["main", "parse_assignments", "parse_value"]
