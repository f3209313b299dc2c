from .secrets import (
    SecretProvider,
    SecretError,
    SecretNotFoundError,
    SecretUnavailableError,
    EnvironmentSecretProvider,
    JsonFileSecretProvider,
    CachedSecretProvider,
)

__all__ = [
    "SecretProvider",
    "SecretError",
    "SecretNotFoundError",
    "SecretUnavailableError",
    "EnvironmentSecretProvider",
    "JsonFileSecretProvider",
    "CachedSecretProvider",
]
