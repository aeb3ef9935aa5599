"""Helpers for safely working with dynamic (untyped) structures.

Registry replies and config files arrive as untyped JSON/TOML. These helpers
narrow them at the boundary so the rest of the code stays typed.
"""

from __future__ import annotations

from typing import Mapping, TypeGuard, cast

StrDict = dict[str, object]


def is_str_dict(obj: object) -> TypeGuard[StrDict]:
    """Return True if obj is a dict with string keys."""
    if not isinstance(obj, dict):
        return False
    d = cast(dict[object, object], obj)
    return all(isinstance(k, str) for k in d.keys())


def as_str_dict(obj: object) -> StrDict | None:
    """Return obj as StrDict if it matches, else None."""
    if is_str_dict(obj):
        return obj
    return None


def get_str(table: Mapping[str, object], key: str) -> str | None:
    """Get a string value from a mapping, stripping whitespace.

    Returns None if missing, not a str, or empty after stripping.
    """
    value = table.get(key)
    if not isinstance(value, str):
        return None
    s = value.strip()
    return s or None


def get_bool(table: Mapping[str, object], key: str) -> bool | None:
    value = table.get(key)
    if isinstance(value, bool):
        return value
    return None


def get_table(table: Mapping[str, object], key: str) -> StrDict | None:
    """Get a nested table (dict with string keys) from a mapping."""
    return as_str_dict(table.get(key))


def get_path_str(table: Mapping[str, object], *path: str) -> str | None:
    """Follow nested tables and return the string at the end of ``path``.

    ``get_path_str(reply, "data", "addReleaseProgrammatic", "uuid")``
    returns None as soon as any hop is missing or has the wrong type.
    """
    if not path:
        return None
    current: Mapping[str, object] | None = table
    for key in path[:-1]:
        if current is None:
            return None
        current = get_table(current, key)
    if current is None:
        return None
    return get_str(current, path[-1])
