"""
Error taxonomy for layerconf.

Conditions that propagate to callers:
- KeyNotFoundError: a dotted key is absent from the resolved configuration
- SecretNotFoundError: a secret name is absent after a provider refresh
- EmptyKeyPathError: a dotted-key operation was given no path segments
- CyclicReferenceError: interpolation references form a cycle
- FragmentParseError: a supported fragment file holds malformed content

Recoverable conditions (malformed folder settings, unsupported fragment
formats, missing environments) are logged where they occur and never
raised.

Exit Codes (CLI):
- 0: Success
- 10: Configuration error
- 11: Secret provider error
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    UNKNOWN_ERROR = 127


class ConfigError(Exception):
    """Base exception for layerconf errors with exit code support."""

    exit_code: ExitCode = ExitCode.CONFIG_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class KeyNotFoundError(ConfigError, KeyError):
    """Raised when a dotted key cannot be found in the resolved configuration."""

    def __init__(self, key: str):
        super().__init__(f"Could not find value for key {key}", {"key": key})
        self.key = key


class EmptyKeyPathError(ConfigError, ValueError):
    """Raised when a key operation is invoked without any path segments."""

    def __init__(self, key: str = ""):
        super().__init__("Cannot use an empty key", {"key": key})


class CyclicReferenceError(ConfigError):
    """Raised when interpolation references loop back on themselves."""

    def __init__(self, chain: list[str]):
        super().__init__(
            f"Cyclic reference while interpolating: {' -> '.join(chain)}",
            {"chain": chain},
        )
        self.chain = chain


class FragmentParseError(ConfigError):
    """Raised when a configuration fragment cannot be parsed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to parse config fragment {path}: {reason}", {"path": path})
        self.path = path
        self.reason = reason


class ConfigNotInitializedError(ConfigError, RuntimeError):
    """Raised when a Config is queried before init()."""

    def __init__(self) -> None:
        super().__init__("Config has not been initialized; call init() first")


class SecretsProviderError(ConfigError):
    """Raised when a secrets provider fails to authenticate or fetch."""

    exit_code = ExitCode.PROVIDER_ERROR


class SecretNotFoundError(SecretsProviderError, KeyError):
    """Raised when a secret is absent from the provider after a refresh."""

    def __init__(self, name: str):
        super().__init__(f"No secret found with name: {name}", {"name": name})
        self.name = name


class SecretBackendUnavailableError(SecretsProviderError):
    """Raised when a secrets backend is unknown or its SDK is not installed."""

    def __init__(self, backend: str, reason: str):
        super().__init__(f"Secrets backend '{backend}' is unavailable: {reason}")
        self.backend = backend
        self.reason = reason


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI commands that converts exceptions into exit codes.

    Exit codes:
        - ConfigError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except ConfigError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=int(e.exit_code),
                        **e.details,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=int(ExitCode.UNKNOWN_ERROR),
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator
