"""Secret providers supplying backend connection strings and credentials."""
import json
import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_SECRET_TTL = 3600  # 1 hour


class SecretError(Exception):
    """Base exception for secret retrieval."""
    pass


class SecretNotFoundError(SecretError):
    """Requested secret does not exist."""
    pass


class SecretUnavailableError(SecretError):
    """Secret source could not be read."""
    pass


class SecretProvider(ABC):
    """Source of named secrets."""

    @abstractmethod
    async def get_secret(self, name: str) -> str:
        """Return the value of a secret.

        Raises:
            SecretNotFoundError: If the secret doesn't exist
            SecretUnavailableError: If the source can't be read
        """
        pass

    @staticmethod
    def _check_name(name: Optional[str]) -> None:
        if not name:
            logger.error("Secret name was not provided.")
            raise ValueError("Secret name cannot be null or empty.")


class EnvironmentSecretProvider(SecretProvider):
    """Reads secrets from environment variables, optionally prefixed."""

    def __init__(self, prefix: str = ""):
        self.prefix = prefix

    async def get_secret(self, name: str) -> str:
        self._check_name(name)
        variable = f"{self.prefix}{name}"
        value = os.environ.get(variable)
        if not value:
            raise SecretNotFoundError(f"Environment variable {variable} is not set")
        return value


class JsonFileSecretProvider(SecretProvider):
    """Reads secrets from a flat JSON object of name -> value.

    Non-string values (e.g. an embedded service-account document) are
    returned re-serialized as JSON.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> dict:
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise SecretUnavailableError(f"Cannot read secrets file {self.path}: {e}") from e

        if not text.strip():
            raise SecretUnavailableError(f"Secrets file {self.path} is empty")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise SecretUnavailableError(f"Secrets file {self.path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise SecretUnavailableError(f"Secrets file {self.path} must hold a JSON object")
        return data

    async def get_secret(self, name: str) -> str:
        self._check_name(name)
        data = self._load()
        if name not in data or data[name] in (None, ""):
            raise SecretNotFoundError(f"Secret {name} not found in {self.path}")
        value = data[name]
        return value if isinstance(value, str) else json.dumps(value)


class CachedSecretProvider(SecretProvider):
    """Thread-safe TTL cache in front of another provider."""

    def __init__(self, inner: SecretProvider, ttl_seconds: int = DEFAULT_SECRET_TTL):
        self.inner = inner
        self.ttl_seconds = ttl_seconds
        self._cache: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def _get_cached(self, name: str) -> Optional[str]:
        with self._lock:
            entry = self._cache.get(name)
            if entry:
                value, expires_at = entry
                if time.time() < expires_at:
                    return value
                else:
                    del self._cache[name]
        return None

    async def get_secret(self, name: str) -> str:
        self._check_name(name)

        cached = self._get_cached(name)
        if cached is not None:
            return cached

        try:
            value = await self.inner.get_secret(name)
        except SecretError as e:
            logger.error(f"Failed to retrieve secret {name}: {e}")
            raise

        with self._lock:
            self._cache[name] = (value, time.time() + self.ttl_seconds)
        return value

    def invalidate(self, name: str):
        """Drop one cached secret."""
        with self._lock:
            self._cache.pop(name, None)

    def clear_expired(self):
        """Remove all expired entries."""
        now = time.time()
        with self._lock:
            expired = [name for name, (_, exp) in self._cache.items() if now >= exp]
            for name in expired:
                del self._cache[name]
