"""
Deferred secret resolution with pluggable provider support.

Any string value of the form ``secret|<name>`` is a secret reference. It is
left untouched by plain lookups and replaced by the provider's value when
passed through ``SecretResolver.process``.

Core provider (always available):
- local: KEY=VALUE secrets file

Optional providers (SDKs loaded on demand):
- vault: HashiCorp Vault, AppRole auth, KV v1/v2 (requires hvac)
- hcp-vault: HCP Vault Secrets (httpx)
- aws-secrets-manager: AWS Secrets Manager (requires aioboto3)
- azure-key-vault: Azure Key Vault (requires azure-identity, azure-keyvault-secrets)
- gcp-secret-manager: GCP Secret Manager (requires google-cloud-secret-manager)
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Callable

import structlog
from cachetools import TTLCache  # type: ignore[import-untyped]

from layerconf.errors import SecretBackendUnavailableError, SecretNotFoundError

if TYPE_CHECKING:
    from layerconf.config import Config

logger = structlog.get_logger()

SECRET_PREFIX = "secret|"
DEFAULT_CACHE_TTL = 300.0
SECRETS_CACHE_SIZE = 10_000
TOKEN_REFRESH_MARGIN = timedelta(milliseconds=500)


def is_secret_ref(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(SECRET_PREFIX)


class SecretsProviderType(StrEnum):
    """Built-in secrets providers."""

    NONE = "none"
    LOCAL = "local"
    VAULT = "vault"
    HCP_VAULT = "hcp-vault"
    AWS = "aws-secrets-manager"
    AZURE = "azure-key-vault"
    GCP = "gcp-secret-manager"


@dataclass
class SecretsToken:
    """Provider auth token and its expiry."""

    value: str
    expires: datetime

    @classmethod
    def for_seconds(cls, value: str, seconds: float) -> "SecretsToken":
        return cls(value=value, expires=datetime.now(timezone.utc) + timedelta(seconds=seconds))

    def expires_within(self, margin: timedelta = TOKEN_REFRESH_MARGIN) -> bool:
        return self.expires - datetime.now(timezone.utc) <= margin


class SecretsProvider(ABC):
    """Base class for secrets providers."""

    name: str = ""

    @abstractmethod
    async def get_auth_token(self, config: "Config") -> SecretsToken:
        """Authenticate against the backend."""

    @abstractmethod
    async def get_secret(self, config: "Config", token: str, name: str) -> str:
        """Fetch a single secret by name."""

    async def get_secrets(self, config: "Config", token: str) -> dict[str, str] | None:
        """Fetch every available secret, or None if the backend cannot list them."""
        return None


ProviderFactory = Callable[..., SecretsProvider]


@dataclass(frozen=True)
class ProviderSpec:
    """Metadata describing a registered secrets provider."""

    name: str
    factory: ProviderFactory
    description: str | None = None


class SecretsProviderRegistry:
    """Simple in-memory registry of secrets providers."""

    def __init__(self) -> None:
        self._providers: dict[str, ProviderSpec] = {}

    def register(
        self,
        name: str,
        factory: ProviderFactory,
        *,
        description: str | None = None,
    ) -> None:
        if not name:
            raise ValueError("Provider name is required")
        self._providers[name] = ProviderSpec(name=name, factory=factory, description=description)

    def create(self, name: str, **kwargs: Any) -> SecretsProvider:
        spec = self._providers.get(name)
        if spec is None:
            raise SecretBackendUnavailableError(name, "provider is not registered")
        return spec.factory(**kwargs)

    def list(self) -> list[ProviderSpec]:
        return list(self._providers.values())


def _lazy_backend(class_name: str) -> ProviderFactory:
    def factory(**kwargs: Any) -> SecretsProvider:
        from layerconf.secrets import backends

        return getattr(backends, class_name)(**kwargs)

    return factory


secrets_registry = SecretsProviderRegistry()
secrets_registry.register(
    SecretsProviderType.LOCAL, _lazy_backend("LocalSecretsProvider"), description="KEY=VALUE file"
)
secrets_registry.register(
    SecretsProviderType.VAULT, _lazy_backend("VaultSecretsProvider"), description="HashiCorp Vault"
)
secrets_registry.register(
    SecretsProviderType.HCP_VAULT,
    _lazy_backend("HcpVaultSecretsProvider"),
    description="HCP Vault Secrets",
)
secrets_registry.register(
    SecretsProviderType.AWS,
    _lazy_backend("AwsSecretsManagerProvider"),
    description="AWS Secrets Manager",
)
secrets_registry.register(
    SecretsProviderType.AZURE,
    _lazy_backend("AzureKeyVaultProvider"),
    description="Azure Key Vault",
)
secrets_registry.register(
    SecretsProviderType.GCP,
    _lazy_backend("GcpSecretManagerProvider"),
    description="GCP Secret Manager",
)


def register_secrets_provider(
    name: str, factory: ProviderFactory, *, description: str | None = None
) -> None:
    secrets_registry.register(name, factory, description=description)


def create_secrets_provider(name: str, **kwargs: Any) -> SecretsProvider:
    return secrets_registry.create(name, **kwargs)


def list_secrets_providers() -> list[ProviderSpec]:
    return secrets_registry.list()


@dataclass
class SecretResolver:
    """
    Resolves secret references through a provider with token and value caching.

    Resolution of ``secret|<name>``:
    1. Refresh the auth token if there is none or it expires within 500ms
    2. Refresh the cache if ``name`` is absent (expired entries are absent)
    3. Return the cached value, or raise SecretNotFoundError

    Concurrent calls are not serialized; two callers that both miss the
    cache both refresh it.
    """

    config: "Config"
    provider: SecretsProvider
    cache_ttl: float = DEFAULT_CACHE_TTL
    timer: Callable[[], float] = time.monotonic
    token: SecretsToken | None = None
    _cache: TTLCache = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._cache = TTLCache(maxsize=SECRETS_CACHE_SIZE, ttl=self.cache_ttl, timer=self.timer)

    @property
    def cached_names(self) -> list[str]:
        return list(self._cache.keys())

    async def refresh_token(self) -> SecretsToken:
        if self.token is None or self.token.expires_within():
            self.token = await self.provider.get_auth_token(self.config)
            logger.debug("secrets_token_refreshed", provider=self.provider.name)
        return self.token

    async def refresh_secrets(self, name: str | None = None) -> None:
        """Refill the cache from the provider.

        Providers that can list secrets refill the whole cache; others fetch
        ``name`` only.
        """
        token = await self.refresh_token()

        secrets = await self.provider.get_secrets(self.config, token.value)
        if secrets is not None:
            self._cache.clear()
            for key, value in secrets.items():
                self._cache[key] = value
            logger.debug("secrets_cache_refreshed", provider=self.provider.name, count=len(secrets))
            return

        if name is not None:
            self._cache[name] = await self.provider.get_secret(self.config, token.value, name)
            logger.debug("secret_fetched", provider=self.provider.name)

    async def get_secret(self, name: str) -> str:
        await self.refresh_token()
        if name not in self._cache:
            await self.refresh_secrets(name)

        try:
            return self._cache[name]
        except KeyError:
            raise SecretNotFoundError(name) from None

    async def process(self, value: Any) -> Any:
        """Return a copy of ``value`` with every secret reference resolved."""
        if isinstance(value, dict):
            return {key: await self.process(child) for key, child in value.items()}
        if isinstance(value, list):
            return [await self.process(child) for child in value]
        if is_secret_ref(value):
            return await self.get_secret(value[len(SECRET_PREFIX) :])
        return value


__all__ = [
    "SECRET_PREFIX",
    "SecretsProviderType",
    "SecretsToken",
    "SecretsProvider",
    "SecretsProviderRegistry",
    "SecretResolver",
    "is_secret_ref",
    "register_secrets_provider",
    "create_secrets_provider",
    "list_secrets_providers",
]
