"""
layerconf - layered configuration resolution.

Provides:
- Directory-tree loading of YAML/JSON/JSONC/JSON5 fragments
- Environment overlays with parent inheritance
- kebab-case/camelCase key normalization
- ``${key}`` and ``${./relative}`` interpolation
- Deferred ``secret|<name>`` resolution through pluggable providers
"""

from layerconf.config import Config, load_config
from layerconf.errors import (
    ConfigError,
    ConfigNotInitializedError,
    CyclicReferenceError,
    EmptyKeyPathError,
    FragmentParseError,
    KeyNotFoundError,
    SecretBackendUnavailableError,
    SecretNotFoundError,
    SecretsProviderError,
)
from layerconf.loader import DirectoryLoader, EnvironmentLocator
from layerconf.merge import merge
from layerconf.normalize import CasingPolicy, normalize
from layerconf.secrets import (
    SecretResolver,
    SecretsProvider,
    SecretsToken,
    register_secrets_provider,
)

__version__ = "0.1.0"

__all__ = [
    # Facade
    "Config",
    "load_config",
    # Engine
    "DirectoryLoader",
    "EnvironmentLocator",
    "merge",
    "normalize",
    "CasingPolicy",
    # Secrets
    "SecretResolver",
    "SecretsProvider",
    "SecretsToken",
    "register_secrets_provider",
    # Errors
    "ConfigError",
    "ConfigNotInitializedError",
    "CyclicReferenceError",
    "EmptyKeyPathError",
    "FragmentParseError",
    "KeyNotFoundError",
    "SecretBackendUnavailableError",
    "SecretNotFoundError",
    "SecretsProviderError",
]
