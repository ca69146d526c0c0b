"""Typed reads from parsed YAML.

``yaml.safe_load`` hands back plain dicts, lists and scalars. The getters
below narrow them at the config boundary. Each accepts several keys and
reads the first one present, so the camelCase keys of older config files
resolve to the same field as the current ones.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import cast

StrDict = dict[str, object]


def as_mapping(obj: object) -> StrDict | None:
    """``obj`` as a dict with string keys, or None."""
    if not isinstance(obj, dict):
        return None
    d = cast(dict[object, object], obj)
    if not all(isinstance(k, str) for k in d):
        return None
    return cast(StrDict, d)


def first(table: Mapping[str, object], *keys: str) -> object | None:
    for key in keys:
        value = table.get(key)
        if value is not None:
            return value
    return None


def get_str(table: Mapping[str, object], *keys: str) -> str | None:
    """A non-empty, stripped string.

    YAML reads ``2.02`` or ``3`` as numbers; versions and branch names are
    strings here, so numbers are converted. Booleans are rejected.
    """
    value = first(table, *keys)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    return value.strip() or None


def get_table(table: Mapping[str, object], *keys: str) -> StrDict | None:
    return as_mapping(first(table, *keys))


def get_list(table: Mapping[str, object], *keys: str) -> list[object] | None:
    value = first(table, *keys)
    if isinstance(value, list):
        return cast(list[object], value)
    return None


def get_flag(table: Mapping[str, object], *keys: str) -> bool:
    """True only for a YAML boolean ``true``."""
    return first(table, *keys) is True
