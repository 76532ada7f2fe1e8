"""
Settings that steer configuration loading.

Three sources:
- Folder settings: ``_config.json`` / ``config.json`` inside a config
  directory (casing policy and parent environments)
- ``config-settings.json`` in the working directory (config root defaults
  and extra environment directories)
- NODE_CONFIG_* environment variables
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from layerconf.normalize import CasingPolicy, parse_casing

logger = structlog.get_logger()

FOLDER_SETTINGS_FILES = ("_config.json", "config.json")
CONFIG_SETTINGS_FILE = "config-settings.json"
DEFAULT_ENV_NAME = "default"


@dataclass
class FolderSettings:
    """Per-directory loading settings."""

    variable_casing: CasingPolicy | None = None
    parent_names: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FolderSettings":
        casing = data.get("variableCasing")
        parents = data.get("parentNames") or []
        if not isinstance(parents, list):
            logger.warning("invalid_parent_names", value=parents)
            parents = []
        return cls(
            variable_casing=parse_casing(casing) if casing is not None else None,
            parent_names=[str(name) for name in parents],
        )


def read_folder_settings(directory: str | Path) -> FolderSettings:
    """
    Read the folder settings file of ``directory``.

    The first of ``_config.json`` and ``config.json`` that exists wins. A
    malformed file is logged and treated as empty settings.
    """
    directory = Path(directory)
    for name in FOLDER_SETTINGS_FILES:
        path = directory / name
        if not path.is_file():
            continue
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except ValueError as e:
            logger.error("malformed_folder_settings", path=str(path), error=str(e))
            return FolderSettings()
        if not isinstance(data, dict):
            logger.error("malformed_folder_settings", path=str(path), error="not an object")
            return FolderSettings()
        return FolderSettings.from_dict(data)
    return FolderSettings()


class ConfigDefaults(BaseModel):
    """``defaults`` section of config-settings.json."""

    dir: str = "config"
    env: str = DEFAULT_ENV_NAME


class ConfigSettingsFile(BaseModel):
    """Schema of config-settings.json."""

    model_config = ConfigDict(populate_by_name=True)

    defaults: ConfigDefaults = Field(default_factory=ConfigDefaults)
    extra_dirs: list[str] = Field(default_factory=list, alias="extraDirs")


def load_config_settings(cwd: str | Path) -> ConfigSettingsFile:
    """Load config-settings.json from ``cwd``, falling back to defaults."""
    path = Path(cwd) / CONFIG_SETTINGS_FILE
    if not path.is_file():
        return ConfigSettingsFile()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ConfigSettingsFile.model_validate(data)
    except (ValueError, ValidationError) as e:
        logger.error("malformed_config_settings", path=str(path), error=str(e))
        return ConfigSettingsFile()


class EnvironmentSettings(BaseSettings):
    """NODE_CONFIG_* process environment variables."""

    model_config = SettingsConfigDict(env_prefix="NODE_CONFIG_", env_ignore_empty=True)

    dir: str | None = None
    env: str | None = None
    # Any non-empty value suppresses the missing-environment warning.
    skip_env_warning: str | None = None
