"""
Secrets provider backends - loaded when a provider is first created.

Cloud SDKs are imported on first use:
- VaultSecretsProvider: hvac
- AwsSecretsManagerProvider: aioboto3
- AzureKeyVaultProvider: azure-identity, azure-keyvault-secrets
- GcpSecretManagerProvider: google-cloud-secret-manager

HcpVaultSecretsProvider talks to the HCP REST API with httpx, and
LocalSecretsProvider reads a KEY=VALUE file.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from layerconf.errors import (
    SecretBackendUnavailableError,
    SecretNotFoundError,
    SecretsProviderError,
)
from layerconf.secrets import SecretsProvider, SecretsToken

if TYPE_CHECKING:
    from layerconf.config import Config

logger = structlog.get_logger()

# Lifetime of the placeholder token issued by backends that authenticate
# implicitly (SDK credential chains, local files).
IMPLICIT_TOKEN_SECONDS = 3600


def _sanitize_error(exc: Exception) -> str:
    """Sanitize error message to avoid leaking sensitive details."""
    return type(exc).__name__


class VaultSecretsProvider(SecretsProvider):
    """HashiCorp Vault backend using AppRole auth and the KV v1/v2 engines.

    Config keys (under ``secrets.vault``): ``endpoint``, ``namespace``,
    ``kv-engine`` (v1 or v2, default v2), ``engine-name`` (mount point,
    default ``secret``), ``path-prefix``. Credentials come from
    VAULT_ROLE_ID and VAULT_SECRET_ID.
    """

    name = "vault"

    def __init__(self) -> None:
        self._client: Any = None
        self._hvac: Any = None

    def _get_client(self, config: "Config") -> Any:
        if self._client is not None:
            return self._client

        try:
            import hvac
        except ImportError as e:
            raise SecretBackendUnavailableError(self.name, "hvac is not installed") from e

        self._hvac = hvac
        self._client = hvac.Client(
            url=config.get("secrets.vault.endpoint"),
            namespace=config.try_get("secrets.vault.namespace"),
        )
        return self._client

    async def get_auth_token(self, config: "Config") -> SecretsToken:
        role_id = os.environ.get("VAULT_ROLE_ID")
        secret_id = os.environ.get("VAULT_SECRET_ID")
        if not role_id or not secret_id:
            raise SecretsProviderError(
                "Failed to authenticate with Vault: VAULT_ROLE_ID and VAULT_SECRET_ID must be set"
            )

        client = self._get_client(config)
        try:
            response = await asyncio.to_thread(
                client.auth.approle.login, role_id=role_id, secret_id=secret_id
            )
        except Exception as e:
            raise SecretsProviderError(
                f"Failed to authenticate with Vault: {_sanitize_error(e)}"
            ) from e

        auth = response.get("auth") or {}
        if not auth.get("client_token"):
            raise SecretsProviderError("Failed to authenticate with Vault: no client token returned")
        return SecretsToken.for_seconds(auth["client_token"], auth.get("lease_duration", 0))

    async def get_secret(self, config: "Config", token: str, name: str) -> str:
        client = self._get_client(config)
        kv_engine = str(config.try_get("secrets.vault.kv-engine") or "v2").lower()
        mount_point = config.try_get("secrets.vault.engine-name") or "secret"
        path = f"{config.try_get('secrets.vault.path-prefix') or ''}{name}"

        if kv_engine not in ("v1", "v2"):
            raise SecretsProviderError(f"Unsupported Vault KV engine: {kv_engine}")

        def _read() -> dict[str, Any]:
            client.token = token
            if kv_engine == "v1":
                response = client.secrets.kv.v1.read_secret(path=path, mount_point=mount_point)
                return response.get("data") or {}
            response = client.secrets.kv.v2.read_secret_version(
                path=path, mount_point=mount_point, raise_on_deleted_version=True
            )
            return (response.get("data") or {}).get("data") or {}

        try:
            data = await asyncio.to_thread(_read)
        except self._hvac.exceptions.InvalidPath as e:
            raise SecretNotFoundError(name) from e
        except Exception as e:
            logger.debug("vault_secret_read_failed", engine=kv_engine, error=_sanitize_error(e))
            raise SecretsProviderError(f"Failed to retrieve secret: {_sanitize_error(e)}") from e

        value = data.get("value")
        if value is None:
            raise SecretNotFoundError(name)
        return str(value)


class HcpVaultSecretsProvider(SecretsProvider):
    """HCP Vault Secrets backend.

    Config keys (under ``secrets.hcp-vault``): ``organization-id``,
    ``project-id``, ``app-name``. Credentials come from HCP_CLIENT_ID and
    HCP_CLIENT_SECRET.
    """

    name = "hcp-vault"

    AUTH_URL = "https://auth.idp.hashicorp.com/oauth2/token"
    API_URL = "https://api.cloud.hashicorp.com/secrets/2023-06-13"
    AUDIENCE = "https://api.hashicorp.cloud"

    def __init__(self, timeout: float = 30.0) -> None:
        self._timeout = timeout

    def _client(self, token: str | None = None) -> httpx.AsyncClient:
        headers = {"Authorization": f"Bearer {token}"} if token else None
        return httpx.AsyncClient(timeout=self._timeout, headers=headers)

    def _app_url(self, config: "Config") -> str:
        org_id = config.get("secrets.hcp-vault.organization-id")
        project_id = config.get("secrets.hcp-vault.project-id")
        app_name = config.get("secrets.hcp-vault.app-name")
        return f"{self.API_URL}/organizations/{org_id}/projects/{project_id}/apps/{app_name}"

    async def get_auth_token(self, config: "Config") -> SecretsToken:
        form = {
            "client_id": os.environ.get("HCP_CLIENT_ID", ""),
            "client_secret": os.environ.get("HCP_CLIENT_SECRET", ""),
            "grant_type": "client_credentials",
            "audience": self.AUDIENCE,
        }
        try:
            async with self._client() as client:
                response = await client.post(self.AUTH_URL, data=form)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as e:
            raise SecretsProviderError(
                f"Failed to get HCP Vault token: {_sanitize_error(e)}; "
                "did you set HCP_CLIENT_ID and HCP_CLIENT_SECRET?"
            ) from e

        return SecretsToken.for_seconds(body["access_token"], body.get("expires_in", 0))

    async def get_secrets(self, config: "Config", token: str) -> dict[str, str]:
        url = f"{self._app_url(config)}/open"
        try:
            async with self._client(token) as client:
                response = await client.get(url)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as e:
            raise SecretsProviderError(f"Failed to list HCP Vault secrets: {_sanitize_error(e)}") from e

        return {
            secret["name"]: secret["version"]["value"]
            for secret in body.get("secrets", [])
        }

    async def get_secret(self, config: "Config", token: str, name: str) -> str:
        url = f"{self._app_url(config)}/open/{name}"
        try:
            async with self._client(token) as client:
                response = await client.get(url)
                if response.status_code == 404:
                    raise SecretNotFoundError(name)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as e:
            raise SecretsProviderError(f"Failed to retrieve HCP Vault secret: {_sanitize_error(e)}") from e

        return body["secret"]["version"]["value"]


class AwsSecretsManagerProvider(SecretsProvider):
    """AWS Secrets Manager backend.

    Config key: ``secrets.aws-secrets-manager.region``. Credentials come from
    the standard AWS credential chain.
    """

    name = "aws-secrets-manager"

    async def get_auth_token(self, config: "Config") -> SecretsToken:
        return SecretsToken.for_seconds("", IMPLICIT_TOKEN_SECONDS)

    async def get_secret(self, config: "Config", token: str, name: str) -> str:
        try:
            import aioboto3
        except ImportError as e:
            raise SecretBackendUnavailableError(self.name, "aioboto3 is not installed") from e

        region = config.try_get("secrets.aws-secrets-manager.region")
        session = aioboto3.Session(region_name=region)
        async with session.client("secretsmanager") as client:
            try:
                response = await client.get_secret_value(SecretId=name, VersionStage="AWSCURRENT")
            except client.exceptions.ResourceNotFoundException as e:
                raise SecretNotFoundError(name) from e

        secret_string = response.get("SecretString")
        if not secret_string:
            raise SecretNotFoundError(name)
        return secret_string


class AzureKeyVaultProvider(SecretsProvider):
    """Azure Key Vault backend.

    Config key: ``secrets.azure-key-vault.endpoint``. DefaultAzureCredential
    reads AZURE_TENANT_ID, AZURE_CLIENT_ID and AZURE_CLIENT_SECRET.
    """

    name = "azure-key-vault"

    def __init__(self) -> None:
        self._client: Any = None

    def _get_client(self, config: "Config") -> Any:
        if self._client is not None:
            return self._client

        try:
            from azure.identity import DefaultAzureCredential
            from azure.keyvault.secrets import SecretClient
        except ImportError as e:
            raise SecretBackendUnavailableError(
                self.name, "azure-identity and azure-keyvault-secrets are not installed"
            ) from e

        self._client = SecretClient(
            vault_url=config.get("secrets.azure-key-vault.endpoint"),
            credential=DefaultAzureCredential(),
        )
        return self._client

    async def get_auth_token(self, config: "Config") -> SecretsToken:
        return SecretsToken.for_seconds("", IMPLICIT_TOKEN_SECONDS)

    async def get_secret(self, config: "Config", token: str, name: str) -> str:
        from azure.core.exceptions import ResourceNotFoundError

        client = self._get_client(config)
        try:
            secret = await asyncio.to_thread(client.get_secret, name)
        except ResourceNotFoundError as e:
            raise SecretNotFoundError(name) from e

        if secret.value is None:
            raise SecretNotFoundError(name)
        return secret.value


class GcpSecretManagerProvider(SecretsProvider):
    """Google Cloud Secret Manager backend.

    Config key: ``secrets.gcp-secret-manager.project-id``. Credentials come
    from Application Default Credentials.
    """

    name = "gcp-secret-manager"

    def __init__(self) -> None:
        self._client: Any = None

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client

        try:
            from google.cloud import secretmanager
        except ImportError as e:
            raise SecretBackendUnavailableError(
                self.name, "google-cloud-secret-manager is not installed"
            ) from e

        self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    async def get_auth_token(self, config: "Config") -> SecretsToken:
        return SecretsToken.for_seconds("", IMPLICIT_TOKEN_SECONDS)

    async def get_secret(self, config: "Config", token: str, name: str) -> str:
        from google.api_core import exceptions as gcp_exceptions

        client = self._get_client()
        project_id = config.get("secrets.gcp-secret-manager.project-id")
        secret_path = f"projects/{project_id}/secrets/{name}/versions/latest"

        try:
            response = await asyncio.to_thread(
                client.access_secret_version, request={"name": secret_path}
            )
        except gcp_exceptions.NotFound as e:
            raise SecretNotFoundError(name) from e

        if not response.payload or not response.payload.data:
            raise SecretNotFoundError(name)
        return response.payload.data.decode("UTF-8")


class LocalSecretsProvider(SecretsProvider):
    """KEY=VALUE secrets file.

    Config key: ``secrets.local.file-path`` (default ``.secrets``), resolved
    against the process working directory.
    """

    name = "local"

    async def get_auth_token(self, config: "Config") -> SecretsToken:
        return SecretsToken.for_seconds("", IMPLICIT_TOKEN_SECONDS)

    def _secrets_file(self, config: "Config") -> Path:
        file_path = config.try_get("secrets.local.file-path") or ".secrets"
        return (config.cwd / file_path).resolve()

    async def get_secrets(self, config: "Config", token: str) -> dict[str, str]:
        path = self._secrets_file(config)
        if not path.is_file():
            raise SecretsProviderError(f"Secrets file does not exist: {path}")

        contents = await asyncio.to_thread(path.read_text, encoding="utf-8")

        secrets: dict[str, str] = {}
        for line in contents.splitlines():
            key, sep, value = line.partition("=")
            if sep and key.strip() and value.strip():
                secrets[key.strip()] = value.strip()

        if not secrets:
            raise SecretsProviderError(f"No secrets found in file: {path}")
        return secrets

    async def get_secret(self, config: "Config", token: str, name: str) -> str:
        secrets = await self.get_secrets(config, token)
        if name not in secrets:
            raise SecretNotFoundError(name)
        return secrets[name]


__all__ = [
    "VaultSecretsProvider",
    "HcpVaultSecretsProvider",
    "AwsSecretsManagerProvider",
    "AzureKeyVaultProvider",
    "GcpSecretManagerProvider",
    "LocalSecretsProvider",
]
