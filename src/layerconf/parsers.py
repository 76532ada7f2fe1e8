"""
Fragment file parsing keyed by file extension.

Supported (case-insensitive):
- .yml / .yaml (PyYAML safe loader)
- .json
- .jsonc / .json5 (json5 accepts comments and trailing commas)
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import json5
import structlog
import yaml

from layerconf.errors import FragmentParseError

logger = structlog.get_logger()

Parser = Callable[[str], Any]


def _parse_yaml(text: str) -> Any:
    return yaml.safe_load(text)


PARSERS: dict[str, Parser] = {
    "yml": _parse_yaml,
    "yaml": _parse_yaml,
    "json": json.loads,
    "jsonc": json5.loads,
    "json5": json5.loads,
}


def is_supported(extension: str) -> bool:
    return extension.lower().lstrip(".") in PARSERS


def parse_text(text: str, extension: str, *, source: str = "<string>") -> Any:
    """
    Parse fragment text using the parser registered for ``extension``.

    Unsupported extensions log a warning and yield an empty mapping. An
    empty document yields an empty mapping.

    Raises:
        FragmentParseError: If the text is not valid for its format
    """
    parser = PARSERS.get(extension.lower().lstrip("."))
    if parser is None:
        logger.warning(
            "unsupported_config_format",
            path=source,
            supported=sorted(PARSERS),
        )
        return {}

    try:
        value = parser(text)
    except (ValueError, yaml.YAMLError) as e:
        raise FragmentParseError(source, str(e)) from e

    return {} if value is None else value


def parse_file(path: str | Path) -> Any:
    """Parse a fragment file; a missing file yields an empty mapping."""
    path = Path(path)
    if not path.is_file():
        return {}

    text = path.read_text(encoding="utf-8")
    return parse_text(text, path.suffix, source=str(path))
