"""
Identifier and text helpers shared by the exporter, importer and resolvers.
"""

from __future__ import annotations

import re
from typing import Any

_GUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

# Everything outside letters, digits, whitespace and this punctuation is dropped
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9\s;:!@#$%^&*()\-+=?,]")


def string_is_guid(value: Any) -> bool:
    """Check whether a value is an 8-4-4-4-12 hexadecimal GUID string."""
    if not isinstance(value, str) or not value:
        return False
    return _GUID_PATTERN.match(value) is not None


def sanitize(text: str | None) -> str:
    """Normalize a display name for fuzzy comparison.

    Strips characters outside the whitelist, trims surrounding whitespace
    and lowercases.

    Example:
        >>> sanitize("  Wode Elf's Hunt™ ")
        'wode elfs hunt'
    """
    return _UNSAFE_CHARS.sub("", text or "").strip().lower()


def sanitized_strings_match(first: str | None, second: str | None) -> bool:
    """Whether two names are equal after sanitizing; None counts as ""."""
    return sanitize(first) == sanitize(second)


def merge_tables(target: dict, source: dict | None) -> dict:
    """Copy every key of ``source`` into ``target`` (overwriting) and return it."""
    if source:
        for key, value in source.items():
            target[key] = value
    return target


def append_list(target: list | None, source: list | None) -> list:
    """Append the elements of ``source`` to ``target`` in order and return it."""
    if target is None:
        return list(source or [])
    if source:
        target.extend(source)
    return target
