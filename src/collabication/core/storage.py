"""
Durable key/value backends for the settings store.

``JsonFileKeyValueStore`` keeps every key in one JSON object file under the
user's home folder:

  * Atomic writes (temp file + ``os.replace``), so a crash never leaves a
    half-written file behind
  * Resilient reads: a corrupt file is backed up and treated as empty
"""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path

logger = logging.getLogger(__name__)


def collabication_home() -> Path:
    return Path.home() / ".collabication"


class MemoryKeyValueStore:
    """Process-local store, used for tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileKeyValueStore:
    """String key/value pairs persisted in a single JSON object file."""

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else collabication_home() / "storage.json"

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> str | None:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self._path)

    def _read(self) -> dict[str, object]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError(f"{self._path.name} root is not an object")
            return data
        except (OSError, ValueError, RecursionError) as exc:
            logger.warning("Storage file %s is unreadable (%s); starting empty.", self._path, exc)
            self._backup()
            return {}

    def _backup(self) -> None:
        ts = time.strftime("%Y%m%d_%H%M%S")
        backup = self._path.with_name(f"{self._path.name}.bak.{ts}")
        try:
            backup.write_bytes(self._path.read_bytes())
        except OSError as exc:
            logger.warning("Could not back up %s: %s", self._path, exc)
        else:
            logger.info("Backed up unreadable storage file to %s", backup)


__all__ = ["JsonFileKeyValueStore", "MemoryKeyValueStore", "collabication_home"]
