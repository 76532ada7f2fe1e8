"""
``${key}`` interpolation over configuration trees.

Placeholders reference other keys of the tree:
- ``${database.host}``: absolute dotted key
- ``${./port}``, ``${../shared/name}``: relative to the mapping that holds
  the string, with filesystem-style ``.``/``..`` handling

Referenced values are resolved recursively before substitution. A
reference to a key that does not exist is left as literal text. Output is
rescanned, so substitutions that join into a new placeholder are resolved
too.
"""

from __future__ import annotations

import json
import posixpath
import re
from typing import Any, Sequence

from layerconf.errors import CyclicReferenceError
from layerconf.keys import MISSING, lookup, to_camel_case

TOKEN_PATTERN = re.compile(r"\$\{([A-Za-z0-9_./-]+)\}")

MAX_PASSES = 10


def stringify(value: Any) -> str:
    """Render a value the way it appears when substituted into a string."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def key_parts_for(expression: str, current_path: Sequence[str]) -> list[str]:
    """
    Turn a placeholder expression into absolute key segments.

    Relative expressions are resolved against the parent of ``current_path``.
    """
    if not expression.startswith("."):
        return [part for part in expression.replace("/", ".").split(".") if part]

    base = "/" + "/".join(current_path[:-1])
    resolved = posixpath.normpath(posixpath.join(base, expression))
    parts: list[str] = []
    for segment in resolved.split("/"):
        parts.extend(part for part in segment.split(".") if part)
    return parts


class Interpolator:
    """
    Resolves placeholders against a source tree.

    The source tree is the merged configuration before key normalization,
    so references resolve against the shape the author wrote; key segments
    still match across kebab-case and camelCase spellings.
    """

    def __init__(self, source: Any):
        self.source = source

    def resolve_string(
        self,
        value: str,
        current_path: Sequence[str] = (),
        _chain: tuple[str, ...] = (),
    ) -> str:
        """Substitute every placeholder in ``value``."""
        if "${" not in value:
            return value

        def replace(match: re.Match[str]) -> str:
            parts = key_parts_for(match.group(1), current_path)
            if not parts:
                return match.group(0)

            target = lookup(self.source, parts, loose=True)
            if target is MISSING:
                return match.group(0)

            key = _chain_key(parts)
            if key in _chain:
                raise CyclicReferenceError([*_chain, key])

            return stringify(self._resolve(target, parts, (*_chain, key)))

        # Substitutions may join into a new placeholder ("$" + "{x}"), so
        # rescan until the text is stable.
        for _ in range(MAX_PASSES):
            resolved = TOKEN_PATTERN.sub(replace, value)
            if resolved == value:
                break
            value = resolved
        return value

    def resolve_tree(self, tree: Any, current_path: Sequence[str] = ()) -> Any:
        """Return a copy of ``tree`` with every string leaf resolved."""
        chain = (_chain_key(current_path),) if current_path else ()
        return self._resolve(tree, current_path, chain)

    def _resolve(self, value: Any, path: Sequence[str], chain: tuple[str, ...]) -> Any:
        # ``chain`` holds every node being resolved, ancestors included: a
        # leaf that references its own ancestor is a cycle.
        if isinstance(value, str):
            return self.resolve_string(value, path, chain)
        if isinstance(value, dict):
            return {
                key: self._resolve(child, [*path, key], (*chain, _chain_key([*path, key])))
                for key, child in value.items()
            }
        if isinstance(value, list):
            return [
                self._resolve(
                    child,
                    [*path, str(index)],
                    (*chain, _chain_key([*path, str(index)])),
                )
                for index, child in enumerate(value)
            ]
        return value


def _chain_key(parts: Sequence[str]) -> str:
    return ".".join(to_camel_case(part) for part in parts)
