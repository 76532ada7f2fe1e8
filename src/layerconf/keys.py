"""
Dotted-key helpers shared by the facade, normalizer and interpolator.
"""

from __future__ import annotations

import re
from typing import Any, Sequence, Union

from layerconf.errors import EmptyKeyPathError

ConfigTree = Union[dict[str, "ConfigTree"], list["ConfigTree"], str, int, float, bool, None]

KEBAB_SEGMENT = re.compile(r"-([A-Za-z0-9])")


class _Missing:
    """Sentinel for absent values (distinct from a stored None)."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def split_key(key: str) -> list[str]:
    """Split a dotted key into its segments.

    Raises:
        EmptyKeyPathError: If the key is empty or contains an empty segment
    """
    if not key:
        raise EmptyKeyPathError(key)
    parts = key.split(".")
    if any(part == "" for part in parts):
        raise EmptyKeyPathError(key)
    return parts


def to_camel_case(key: str) -> str:
    """
    Convert a kebab-case key to camelCase.

    Examples:
        hello-world → helloWorld
        test-1 → test1
        nested-key-2 → nestedKey2
    """
    return KEBAB_SEGMENT.sub(lambda m: m.group(1).upper(), key)


def has_kebab_segment(key: str) -> bool:
    return KEBAB_SEGMENT.search(key) is not None


def _find_key(mapping: dict[str, Any], part: str, loose: bool) -> Any:
    camel = to_camel_case(part)
    if camel in mapping:
        return mapping[camel]
    if part in mapping:
        return mapping[part]
    if loose:
        for candidate, value in mapping.items():
            if to_camel_case(candidate) == camel:
                return value
    return MISSING


def lookup(tree: Any, parts: Sequence[str], *, loose: bool = False) -> Any:
    """
    Walk ``parts`` down ``tree`` and return the value found, or MISSING.

    Each mapping segment is tried in camelCase form first, then raw. With
    ``loose`` set, any key whose camelCase form matches the segment's is also
    accepted, so ``helloWorld`` finds ``hello-world`` in an unnormalized tree.
    Numeric segments index into sequences.
    """
    if not parts:
        raise EmptyKeyPathError()

    current = tree
    for part in parts:
        if isinstance(current, dict):
            current = _find_key(current, part, loose)
        elif isinstance(current, list) and part.isascii() and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else MISSING
        else:
            return MISSING
        if current is MISSING:
            return MISSING
    return current
