"""Tests for the deep-merge and strip helpers."""

from __future__ import annotations

import copy

from collabication.core.merge import UNSET, deep_merge, iter_leaves, set_path, strip_unset


def test_deep_merge_keeps_siblings_of_overridden_keys() -> None:
    base = {"api": {"base_url": "http://localhost:4000", "timeout": 30000}}
    merged = deep_merge(base, {"api": {"base_url": "/api"}})
    assert merged == {"api": {"base_url": "/api", "timeout": 30000}}


def test_deep_merge_does_not_mutate_inputs() -> None:
    base = {"api": {"timeout": 1}, "tags": ["a"]}
    updates = {"api": {"timeout": 2}, "tags": ["b"]}
    base_before = copy.deepcopy(base)
    updates_before = copy.deepcopy(updates)

    merged = deep_merge(base, updates)
    merged["api"]["timeout"] = 99
    merged["tags"].append("c")

    assert base == base_before
    assert updates == updates_before


def test_deep_merge_replaces_lists_wholesale() -> None:
    merged = deep_merge({"types": ["md", "txt", "py"]}, {"types": ["json"]})
    assert merged == {"types": ["json"]}


def test_deep_merge_skips_unset_but_applies_falsy_values() -> None:
    base = {"features": {"offline_mode": True, "auto_save": True}, "retries": 3}
    merged = deep_merge(
        base,
        {"features": {"offline_mode": False, "auto_save": UNSET}, "retries": 0},
    )
    assert merged == {"features": {"offline_mode": False, "auto_save": True}, "retries": 0}


def test_deep_merge_initialises_missing_structures() -> None:
    merged = deep_merge({}, {"security": {"csp": {"img_src": ["'self'"]}}})
    assert merged == {"security": {"csp": {"img_src": ["'self'"]}}}


def test_deep_merge_replaces_scalar_base_with_structure() -> None:
    merged = deep_merge({"api": "legacy"}, {"api": {"timeout": 5}})
    assert merged == {"api": {"timeout": 5}}


def test_strip_unset_drops_leaves_and_emptied_structures() -> None:
    tree = {
        "api": {"base_url": UNSET, "timeout": UNSET},
        "collaboration": {"server_url": UNSET, "reconnect_interval": 5000},
        "github": {"nested": {"deeper": UNSET}},
        "logging": {},
    }
    assert strip_unset(tree) == {"collaboration": {"reconnect_interval": 5000}}


def test_strip_unset_keeps_none_and_false_values() -> None:
    tree = {"a": None, "b": False, "c": 0, "d": "", "e": UNSET}
    assert strip_unset(tree) == {"a": None, "b": False, "c": 0, "d": ""}


def test_unset_is_a_falsy_singleton() -> None:
    assert not UNSET
    assert repr(UNSET) == "UNSET"
    assert copy.deepcopy({"x": UNSET})["x"] is UNSET


def test_iter_leaves_and_set_path() -> None:
    tree: dict = {}
    set_path(tree, ("api", "timeout"), 10)
    set_path(tree, ("api", "base_url"), "/api")
    set_path(tree, ("app", "name"), "Collabication")

    assert sorted(iter_leaves(tree)) == [
        (("api", "base_url"), "/api"),
        (("api", "timeout"), 10),
        (("app", "name"), "Collabication"),
    ]
