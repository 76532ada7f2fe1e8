"""
Key normalization for configuration trees.

Kebab-case keys (``hello-world``) are exposed under their camelCase alias
(``helloWorld``) according to a casing policy:

- camel: only the camelCase key is kept
- original: only the key as written is kept
- both: the key as written and its camelCase alias share the same subtree

A mapping may carry the reserved ``variableCasing`` key to switch the policy
for itself and everything nested below it. The reserved key never appears in
the output.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

import structlog

from layerconf.keys import has_kebab_segment, to_camel_case

logger = structlog.get_logger()

CASING_KEYS = ("variableCasing", "variable-casing")


class CasingPolicy(StrEnum):
    """Supported key casing policies."""

    ORIGINAL = "original"
    CAMEL = "camel"
    BOTH = "both"


DEFAULT_CASING = CasingPolicy.CAMEL


def parse_casing(value: Any) -> CasingPolicy | None:
    """Parse a casing policy, returning None for unknown values."""
    if isinstance(value, CasingPolicy):
        return value
    try:
        return CasingPolicy(str(value).lower())
    except ValueError:
        logger.warning("unknown_variable_casing", value=value)
        return None


def normalize(tree: Any, policy: CasingPolicy | str = DEFAULT_CASING) -> Any:
    """
    Return a copy of ``tree`` with keys exposed according to ``policy``.

    Recurses through mappings and through sequences; scalar sequence
    elements pass through unchanged. The input is never mutated.
    """
    policy = parse_casing(policy) or DEFAULT_CASING

    if isinstance(tree, list):
        return [normalize(item, policy) for item in tree]
    if not isinstance(tree, dict):
        return tree

    for casing_key in CASING_KEYS:
        if casing_key in tree:
            policy = parse_casing(tree[casing_key]) or policy

    result: dict[str, Any] = {}
    originals = set(tree)

    for key, value in tree.items():
        if key in CASING_KEYS:
            continue
        if policy == CasingPolicy.ORIGINAL or not has_kebab_segment(key):
            result[key] = normalize(value, policy)
            continue

        camel = to_camel_case(key)
        if policy == CasingPolicy.CAMEL:
            if camel in originals:
                logger.warning("casing_collision", key=key, existing=camel)
                continue
            result[camel] = normalize(value, policy)
        else:
            result[key] = normalize(value, policy)

    # Aliases go in last so a derived key never displaces an explicit one.
    if policy == CasingPolicy.BOTH:
        for key in tree:
            if key in CASING_KEYS or not has_kebab_segment(key):
                continue
            camel = to_camel_case(key)
            if camel not in originals:
                result[camel] = result[key]

    return result
