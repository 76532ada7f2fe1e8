"""
Deep merge for configuration layers.

Layers are merged left to right and the later layer wins per leaf.
Sequences are replaced as a unit and never merged element-wise.
"""

from __future__ import annotations

import copy
from typing import Any


def merge_two(base: Any, override: Any) -> Any:
    """Merge ``override`` onto ``base`` without mutating either."""
    if isinstance(base, dict) and isinstance(override, dict):
        merged = {key: copy.deepcopy(value) for key, value in base.items()}
        for key, value in override.items():
            if key in merged:
                merged[key] = merge_two(merged[key], value)
            else:
                merged[key] = copy.deepcopy(value)
        return merged

    # Lists, scalars and shape mismatches: the right-hand side replaces.
    return copy.deepcopy(override)


def merge(*layers: Any) -> dict[str, Any]:
    """
    Merge configuration layers left to right.

    Args:
        *layers: Mappings in increasing precedence order. Non-mapping layers
            are ignored.

    Returns:
        A new mapping; the inputs are left untouched.

    Example:
        merge({"a": [1, 2], "b": {"c": 1}}, {"a": [3], "b": {"d": 2}})
        → {"a": [3], "b": {"c": 1, "d": 2}}
    """
    result: dict[str, Any] = {}
    for layer in layers:
        if isinstance(layer, dict):
            result = merge_two(result, layer)
    return result
