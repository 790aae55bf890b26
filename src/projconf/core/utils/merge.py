"""Canonical deep merge utilities.

Merge semantics ("later wins"):
- object/object overlaps are merged recursively
- any other overlap is replaced by the incoming value
- arrays are replaced whole, never merged element-wise
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, MutableMapping


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge mappings without mutating inputs.

    Args:
        base: Base mapping (lower priority)
        override: Override mapping (higher priority)

    Returns:
        New merged dictionary

    Example:
        >>> base = {"a": 1, "b": {"c": 2}}
        >>> override = {"b": {"d": 3}}
        >>> deep_merge(base, override)
        {'a': 1, 'b': {'c': 2, 'd': 3}}
    """
    result: Dict[str, Any] = dict(base)
    for key, value in (override or {}).items():
        current = result.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = value
    return result


def deep_merge_into(target: MutableMapping[str, Any], source: Mapping[str, Any]) -> None:
    """Merge ``source`` into ``target`` in place.

    Nested mappings already present in ``target`` are updated in place so that
    wrappers around them (e.g. reactive tables) keep their identity.
    """
    for key, value in source.items():
        current = target.get(key)
        if isinstance(current, MutableMapping) and isinstance(value, Mapping):
            deep_merge_into(current, value)
        else:
            target[key] = value


__all__ = ["deep_merge", "deep_merge_into"]
