"""
Directory tree loading.

A config directory is assembled into one mapping:
1. An index file (``index.*`` or ``_index.*``) supplies the base keys
2. Every other file ``name.ext`` is parsed and merged under ``name``
3. Every subdirectory ``name`` is loaded recursively and merged under ``name``

Environment directories may declare parent environments in their folder
settings; parents are loaded (recursively) and merged before the
directory's own content.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Iterable

import structlog

from layerconf.merge import merge, merge_two
from layerconf.parsers import parse_file
from layerconf.settings import (
    DEFAULT_ENV_NAME,
    FOLDER_SETTINGS_FILES,
    FolderSettings,
    read_folder_settings,
)

logger = structlog.get_logger()

INDEX_STEMS = ("index", "_index")

EnvironmentLookup = Callable[[str], Path | None]


def _is_index_file(name: str) -> bool:
    stem, dot, _ = name.partition(".")
    return bool(dot) and stem in INDEX_STEMS


class DirectoryLoader:
    """Loads config directories into merged mappings."""

    def load(self, directory: str | Path, settings: FolderSettings | None = None) -> dict[str, Any]:
        """
        Load ``directory`` into a mapping.

        Returns an empty mapping if the directory does not exist.
        """
        directory = Path(directory)
        if not directory.is_dir():
            return {}

        if settings is None:
            settings = read_folder_settings(directory)

        entries = sorted(
            (entry for entry in directory.iterdir() if not entry.name.startswith(".")),
            key=lambda entry: entry.name,
        )

        result: dict[str, Any] = {}
        index_files = [e for e in entries if e.is_file() and _is_index_file(e.name)]
        if index_files:
            for extra in index_files[1:]:
                logger.warning(
                    "ambiguous_index_file",
                    path=str(extra),
                    using=str(index_files[0]),
                )
            index = parse_file(index_files[0])
            if isinstance(index, dict):
                result = merge(result, index)
            else:
                logger.warning("index_file_not_mapping", path=str(index_files[0]))

        for entry in entries:
            if entry.is_dir():
                key = entry.name
                value: Any = self.load(entry)
            elif entry.name in FOLDER_SETTINGS_FILES or _is_index_file(entry.name):
                continue
            else:
                parts = entry.name.split(".")
                if len(parts) != 2 or not parts[0]:
                    logger.warning(
                        "invalid_config_file_name",
                        path=str(entry),
                        reason="config files need exactly one extension and no extra periods",
                    )
                    continue
                key = parts[0]
                value = parse_file(entry)

            if key in result:
                logger.warning("config_key_collision", directory=str(directory), key=key)
                result[key] = merge_two(result[key], value)
            else:
                result[key] = value

        if settings.variable_casing is not None:
            result["variableCasing"] = str(settings.variable_casing)

        return result

    def load_with_parents(
        self,
        directory: str | Path,
        settings: FolderSettings | None,
        find_environment: EnvironmentLookup,
        visited: set[str] | None = None,
    ) -> dict[str, Any]:
        """
        Load ``directory`` with its declared parent environments merged first.

        Parents named ``default`` or already visited in this chain are
        skipped. A parent that cannot be found contributes nothing.
        """
        directory = Path(directory)
        if settings is None:
            settings = read_folder_settings(directory)
        if visited is None:
            visited = {DEFAULT_ENV_NAME, directory.name}

        layers: list[dict[str, Any]] = []
        for name in settings.parent_names:
            if name == DEFAULT_ENV_NAME or name in visited:
                continue
            visited.add(name)

            parent_dir = find_environment(name)
            if parent_dir is None:
                logger.warning("parent_environment_not_found", parent=name, child=directory.name)
                continue

            logger.debug("loading_parent_environment", parent=name, child=directory.name)
            layers.append(
                self.load_with_parents(parent_dir, None, find_environment, visited)
            )

        layers.append(self.load(directory, settings))
        return merge(*layers)


class EnvironmentLocator:
    """Maps environment names to directories.

    The primary config directory is searched first, then each extra
    directory in order.
    """

    def __init__(self, config_dir: str | Path, extra_dirs: Iterable[str | Path] = ()):
        self.config_dir = Path(config_dir)
        self.extra_dirs = [Path(d) for d in extra_dirs]

    @property
    def search_dirs(self) -> list[Path]:
        return [self.config_dir, *self.extra_dirs]

    def find(self, name: str) -> Path | None:
        if not name or os.sep in name or name in (".", ".."):
            return None
        for base in self.search_dirs:
            candidate = base / name
            if candidate.is_dir():
                return candidate
        return None

    def list_environments(self) -> list[str]:
        names: set[str] = set()
        for base in self.search_dirs:
            if not base.is_dir():
                continue
            names.update(
                entry.name
                for entry in base.iterdir()
                if entry.is_dir() and not entry.name.startswith(".")
            )
        return sorted(names)
