"""
Configuration facade.

A ``Config`` is constructed once per process (or per test) and passed
explicitly to whatever needs it. ``init`` loads the layered configuration:

    default (+ parents) < environment (+ parents) < local < override.json

The merged tree is normalized according to its casing policy and every
``${...}`` placeholder is substituted, producing an immutable snapshot that
all queries read from.

Example:
    config = load_config(config_env="production")
    host = config.get("database.host")
    password = await config.get_with_secrets("database.password")
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

import structlog

from layerconf.errors import ConfigNotInitializedError, KeyNotFoundError
from layerconf.interpolation import Interpolator, stringify
from layerconf.keys import MISSING, lookup, split_key
from layerconf.loader import DirectoryLoader, EnvironmentLocator
from layerconf.merge import merge, merge_two
from layerconf.normalize import DEFAULT_CASING, normalize
from layerconf.parsers import is_supported, parse_file
from layerconf.secrets import (
    DEFAULT_CACHE_TTL,
    SecretResolver,
    SecretsProvider,
    SecretsProviderType,
    create_secrets_provider,
)
from layerconf.settings import DEFAULT_ENV_NAME, EnvironmentSettings, load_config_settings

logger = structlog.get_logger()

LOCAL_ENV_NAME = "local"
OVERRIDE_FILE = "override.json"
CUSTOM_VALUES_FILE = "custom.json"
ENVIRONMENT_MAP_STEM = "environment"


class Config:
    """Layered configuration for one process lifetime."""

    def __init__(
        self,
        cwd: str | Path | None = None,
        secrets_provider: SecretsProvider | None = None,
    ):
        self.cwd = Path(cwd) if cwd is not None else Path.cwd()
        self._secrets_provider = secrets_provider
        self._reset()

    def _reset(self) -> None:
        self._initialized = False
        self._config_dir: Path | None = None
        self._environment: str | None = None
        self._locator: EnvironmentLocator | None = None
        self._raw: dict[str, Any] = {}
        self._values: dict[str, Any] = {}
        self._environment_map: dict[str, Any] = {}
        self._secrets: SecretResolver | None = None
        self.custom_values: dict[str, Any] = {}
        self.custom_values_path: Path | None = None

    def init(self, config_dir: str | Path | None = None, config_env: str | None = None) -> "Config":
        """
        Load configuration, discarding any previously loaded state.

        Args:
            config_dir: Config root. Falls back to NODE_CONFIG_DIR, then
                ``<cwd>/<defaults.dir>`` from config-settings.json
            config_env: Active environment. Falls back to NODE_CONFIG_ENV,
                then ``defaults.env`` from config-settings.json

        Returns:
            self, for chaining
        """
        self._reset()

        file_settings = load_config_settings(self.cwd)
        env_settings = EnvironmentSettings()

        root = Path(config_dir or env_settings.dir or file_settings.defaults.dir)
        if not root.is_absolute():
            root = self.cwd / root
        environment = config_env or env_settings.env or file_settings.defaults.env

        locator = EnvironmentLocator(root, [self.cwd / d for d in file_settings.extra_dirs])
        loader = DirectoryLoader()

        layers = [loader.load_with_parents(root / DEFAULT_ENV_NAME, None, locator.find)]

        if environment != DEFAULT_ENV_NAME:
            env_dir = locator.find(environment)
            if env_dir is not None:
                layers.append(loader.load_with_parents(env_dir, None, locator.find))
            elif not env_settings.skip_env_warning:
                logger.warning(
                    "environment_not_found",
                    environment=environment,
                    search_dirs=[str(d) for d in locator.search_dirs],
                )

        if environment != LOCAL_ENV_NAME:
            layers.append(loader.load(root / LOCAL_ENV_NAME))

        override = parse_file(root / OVERRIDE_FILE)
        if isinstance(override, dict):
            layers.append(override)

        self._raw = merge(*layers)
        normalized = normalize(self._raw, DEFAULT_CASING)
        self._values = Interpolator(self._raw).resolve_tree(normalized)

        self._environment_map = self._load_environment_map(root)
        self._config_dir = root
        self._environment = environment
        self._locator = locator
        self.custom_values_path = root / CUSTOM_VALUES_FILE
        self._initialized = True

        logger.debug(
            "config_loaded",
            config_dir=str(root),
            environment=environment,
            layers=len(layers),
        )
        return self

    @staticmethod
    def _load_environment_map(root: Path) -> dict[str, Any]:
        if not root.is_dir():
            return {}
        for path in sorted(root.iterdir()):
            stem, dot, ext = path.name.partition(".")
            if stem == ENVIRONMENT_MAP_STEM and dot and path.is_file() and is_supported(ext):
                data = parse_file(path)
                return data if isinstance(data, dict) else {}
        return {}

    def _require_init(self) -> None:
        if not self._initialized:
            raise ConfigNotInitializedError()

    @property
    def config_dir(self) -> Path:
        self._require_init()
        assert self._config_dir is not None
        return self._config_dir

    @property
    def environment(self) -> str:
        self._require_init()
        assert self._environment is not None
        return self._environment

    @property
    def environment_locator(self) -> EnvironmentLocator:
        self._require_init()
        assert self._locator is not None
        return self._locator

    # Queries

    def try_get(self, key: str, default: Any = None) -> Any:
        """Return the value at dotted ``key``, or ``default`` if absent."""
        self._require_init()
        value = lookup(self._values, split_key(key))
        if value is MISSING:
            return default
        return copy.deepcopy(value)

    def get(self, key: str) -> Any:
        """
        Return the value at dotted ``key``.

        Raises:
            KeyNotFoundError: If any segment of the key is absent
            EmptyKeyPathError: If the key is empty
        """
        value = self.try_get(key, MISSING)
        if value is MISSING:
            raise KeyNotFoundError(key)
        return value

    def has(self, key: str) -> bool:
        return self.try_get(key, MISSING) is not MISSING

    def get_json(self) -> dict[str, Any]:
        """Return a copy of the whole resolved configuration."""
        self._require_init()
        return copy.deepcopy(self._values)

    def get_configured_env(self) -> dict[str, str]:
        """
        Resolve the ``environment.*`` map into environment variables.

        The map's keys are variable names and its values are config keys.

        Raises:
            KeyNotFoundError: If a mapped config key does not exist
        """
        self._require_init()
        return {
            str(name): stringify(self.get(str(key)))
            for name, key in self._environment_map.items()
        }

    # Custom values

    def set(self, key: str, value: Any) -> None:
        """
        Record ``value`` at dotted ``key`` in the custom values.

        Custom values are persisted by ``save`` and do not change what
        ``get`` returns.
        """
        parts = split_key(key)
        nested: Any = copy.deepcopy(value)
        for part in reversed(parts):
            nested = {part: nested}
        self.custom_values = merge_two(self.custom_values, nested)

    def save(self, path: str | Path | None = None) -> Path:
        """Write the custom values as JSON, replacing the file."""
        if path is None:
            self._require_init()
            path = self.custom_values_path
        path = Path(path)
        path.write_text(json.dumps(self.custom_values, indent=2), encoding="utf-8")
        logger.info("custom_values_saved", path=str(path))
        return path

    # Secrets

    @property
    def secrets(self) -> SecretResolver | None:
        """Secret resolver, or None when no provider is configured."""
        self._require_init()
        if self._secrets is None:
            provider = self._secrets_provider
            if provider is None:
                provider_name = self.try_get("secrets.provider") or SecretsProviderType.NONE
                if provider_name == SecretsProviderType.NONE:
                    return None
                provider = create_secrets_provider(str(provider_name))
            cache_ttl = float(self.try_get("secrets.cache-ttl", DEFAULT_CACHE_TTL))
            self._secrets = SecretResolver(config=self, provider=provider, cache_ttl=cache_ttl)
            logger.debug("secrets_provider_configured", provider=provider.name, cache_ttl=cache_ttl)
        return self._secrets

    async def process_secrets(self, value: Any) -> Any:
        """Return ``value`` with every ``secret|<name>`` reference resolved."""
        resolver = self.secrets
        if resolver is None:
            return value
        return await resolver.process(value)

    async def get_with_secrets(self, key: str) -> Any:
        return await self.process_secrets(self.get(key))

    async def refresh_secrets(self, name: str | None = None) -> None:
        resolver = self.secrets
        if resolver is not None:
            await resolver.refresh_secrets(name)


def load_config(
    config_dir: str | Path | None = None,
    config_env: str | None = None,
    *,
    cwd: str | Path | None = None,
    secrets_provider: SecretsProvider | None = None,
) -> Config:
    """Create and initialize a ``Config``."""
    return Config(cwd=cwd, secrets_provider=secrets_provider).init(
        config_dir=config_dir, config_env=config_env
    )
