"""Layered configuration merge with a fixed override precedence."""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``override`` applied key by key.

    Nested mappings merge recursively; any other value in ``override`` replaces
    the value in ``base`` (lists are replaced, not concatenated). Neither input
    is mutated.
    """

    merged: dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def merge_layers(*layers: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge ``layers`` left to right; later layers win."""

    merged: dict[str, Any] = {}
    for layer in layers:
        if layer:
            merged = deep_merge(merged, layer)
    return merged
