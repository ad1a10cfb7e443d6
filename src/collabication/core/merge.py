"""
Structural merge helpers shared by the configuration resolver and the settings store.

Override trees are plain nested dictionaries. A leaf that is ``UNSET`` means
"not configured" and never replaces a lower-ranked value; lists are leaves and
are replaced wholesale.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any, Final


class _Unset:
    """Marker type for a value that was never configured."""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _Unset:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Unset:
        return self

    def __reduce__(self) -> str:
        return "UNSET"


UNSET: Final = _Unset()


def deep_merge(base: Mapping[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge ``updates`` over ``base`` without mutating either."""
    result: dict[str, Any] = dict(base)
    for key, value in updates.items():
        if isinstance(value, Mapping):
            current = result.get(key)
            result[key] = deep_merge(current if isinstance(current, Mapping) else {}, value)
        elif value is not UNSET:
            result[key] = list(value) if isinstance(value, list) else value
    return result


def strip_unset(tree: Mapping[str, Any]) -> dict[str, Any]:
    """
    Drop every ``UNSET`` leaf, then every mapping left empty by that pass.

    Mappings that were already empty on input are dropped as well, so the
    result never carries a structure that could shadow concrete values.
    """
    result: dict[str, Any] = {}
    for key, value in tree.items():
        if isinstance(value, Mapping):
            stripped = strip_unset(value)
            if stripped:
                result[key] = stripped
        elif value is not UNSET:
            result[key] = value
    return result


def iter_leaves(tree: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> Iterator[
    tuple[tuple[str, ...], Any]
]:
    """Yield ``(path, value)`` for every non-mapping leaf in ``tree``."""
    for key, value in tree.items():
        path = (*prefix, str(key))
        if isinstance(value, Mapping):
            yield from iter_leaves(value, path)
        else:
            yield path, value


def set_path(tree: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    """Assign ``value`` at ``path`` inside ``tree``, creating parents as needed."""
    node = tree
    for key in path[:-1]:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    node[path[-1]] = value


__all__ = ["UNSET", "deep_merge", "iter_leaves", "set_path", "strip_unset"]
