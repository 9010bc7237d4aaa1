"""Cascading merge of config layers (system, user, project, environment)."""

from __future__ import annotations

from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return base updated by override without mutating either.

    Nested mappings merge key by key. Lists and scalars from override replace
    the base value. A None in override leaves the base value in place, so a
    layer can mention a key without setting it.
    """
    result = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = deep_merge(current, value)
        else:
            result[key] = value
    return result


def merge_configs(*layers: dict[str, Any]) -> dict[str, Any]:
    """Merge layers in order; later layers win."""
    merged: dict[str, Any] = {}
    for layer in layers:
        if layer:
            merged = deep_merge(merged, layer)
    return merged
