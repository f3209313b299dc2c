"""Factory for creating storage backends."""
import json
import logging
import os
from pathlib import Path
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from ...config import (
    DEFAULT_DRIVE_CREDENTIALS_SECRET,
    SECRET_CACHE_TTL,
)
from ...services.secrets import (
    CachedSecretProvider,
    EnvironmentSecretProvider,
    JsonFileSecretProvider,
    SecretProvider,
)
from .base import StorageConfig, StorageInterface
from .drive_storage import DriveStorage
from .endpoints import DriveEndpointFactory, S3EndpointFactory
from .local_storage import LocalStorage
from .s3_storage import S3Storage

logger = logging.getLogger(__name__)

S3_BACKENDS = ("s3", "minio")
BACKENDS = ("local",) + S3_BACKENDS + ("gdrive",)


# Singleton instance
_storage_instance: Optional[StorageInterface] = None


class StorageSettings(BaseModel):
    """Storage configuration as read from a JSON file."""
    backend: Literal["local", "s3", "minio", "gdrive"]
    base_path: Optional[Path] = None
    endpoint_url: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: str = "us-east-1"
    use_ssl: bool = True
    connection_secret: Optional[str] = None
    root_folder_id: str = "root"
    delete_batch_threshold: int = Field(default=50, ge=1)


def get_storage_config() -> StorageConfig:
    """Get storage configuration from environment variables.

    Environment variables:
    - STORAGE_BACKEND: 'local' (default), 's3', 'minio', 'gdrive'
    - STORAGE_BASE_PATH: Root for local storage (default: none, raw paths)

    For S3:
    - S3_ENDPOINT: Custom endpoint (for MinIO)
    - S3_ACCESS_KEY: Access key
    - S3_SECRET_KEY: Secret key
    - S3_REGION: Region (default: us-east-1)
    - S3_USE_SSL: Use SSL (default: true)
    - S3_CONNECTION_SECRET: Secret holding a connection string (optional)

    For Google Drive:
    - GDRIVE_CREDENTIALS_SECRET: Secret holding service-account JSON
      (default: GDRIVE_CREDENTIALS)
    - GDRIVE_ROOT_FOLDER_ID: Folder paths are resolved from (default: root)
    - STORAGE_DELETE_BATCH_THRESHOLD: Concurrent deletes per batch (default: 50)
    """
    backend = os.environ.get("STORAGE_BACKEND", "local").lower()

    if backend == "local":
        base_path = os.environ.get("STORAGE_BASE_PATH")
        return StorageConfig(
            backend="local",
            base_path=Path(base_path) if base_path else None
        )

    elif backend in S3_BACKENDS:
        return StorageConfig(
            backend=backend,
            endpoint_url=os.environ.get("S3_ENDPOINT"),
            access_key=os.environ.get("S3_ACCESS_KEY"),
            secret_key=os.environ.get("S3_SECRET_KEY"),
            region=os.environ.get("S3_REGION", "us-east-1"),
            use_ssl=os.environ.get("S3_USE_SSL", "true").lower() == "true",
            connection_secret=os.environ.get("S3_CONNECTION_SECRET")
        )

    elif backend == "gdrive":
        return StorageConfig(
            backend="gdrive",
            connection_secret=os.environ.get(
                "GDRIVE_CREDENTIALS_SECRET", DEFAULT_DRIVE_CREDENTIALS_SECRET
            ),
            root_folder_id=os.environ.get("GDRIVE_ROOT_FOLDER_ID", "root"),
            delete_batch_threshold=int(
                os.environ.get("STORAGE_DELETE_BATCH_THRESHOLD", "50")
            )
        )

    else:
        raise ValueError(f"Unknown storage backend: {backend}")


def load_storage_config(path: Union[str, Path]) -> StorageConfig:
    """Load storage configuration from a JSON file.

    Raises:
        ValueError: If the file is missing, empty, malformed or incomplete
    """
    path = Path(path)
    if not path.is_file():
        raise ValueError(f"Configuration file not found: {path}")

    text = path.read_text(encoding="utf-8")
    if not text.strip():
        raise ValueError(f"Configuration file is empty: {path}")

    try:
        settings = StorageSettings.model_validate(json.loads(text))
    except json.JSONDecodeError as e:
        raise ValueError(f"Configuration file {path} is not valid JSON: {e}") from e
    except ValidationError as e:
        raise ValueError(f"Invalid storage configuration in {path}: {e}") from e

    if settings.backend == "gdrive" and not settings.connection_secret:
        raise ValueError(f"connection_secret is missing in {path} for backend 'gdrive'")

    return StorageConfig(**settings.model_dump())


def get_secret_provider() -> SecretProvider:
    """Default secret provider: SECRETS_FILE if set, else the environment, cached."""
    secrets_file = os.environ.get("SECRETS_FILE")
    if secrets_file:
        inner = JsonFileSecretProvider(secrets_file)
    else:
        inner = EnvironmentSecretProvider()
    ttl = int(os.environ.get("SECRET_CACHE_TTL", str(SECRET_CACHE_TTL)))
    return CachedSecretProvider(inner, ttl_seconds=ttl)


async def create_storage(
    config: StorageConfig,
    secret_provider: Optional[SecretProvider] = None,
    logger: Optional[logging.Logger] = None
) -> StorageInterface:
    """Create storage backend from configuration.

    Secrets are fetched once here; the endpoint they describe is owned by
    the returned instance.

    Args:
        config: Storage configuration
        secret_provider: Source of connection strings/credentials
        logger: Logger passed to the backend

    Returns:
        Storage backend instance
    """
    if config.backend == "local":
        return LocalStorage(config, logger=logger)

    connection = None
    if config.connection_secret:
        if secret_provider is None:
            raise ValueError(
                f"Backend '{config.backend}' needs a secret provider "
                f"to read '{config.connection_secret}'"
            )
        connection = await secret_provider.get_secret(config.connection_secret)

    if config.backend in S3_BACKENDS:
        client = S3EndpointFactory(config).create_endpoint(connection)
        return S3Storage(client, config, logger=logger)

    elif config.backend == "gdrive":
        if not connection:
            raise ValueError("Google Drive storage requires connection_secret")
        service = DriveEndpointFactory().create_endpoint(connection)
        return DriveStorage(service, config, logger=logger)

    else:
        raise ValueError(f"Unknown storage backend: {config.backend}")


async def get_storage() -> StorageInterface:
    """Get or create singleton storage instance.

    This is the main entry point for getting storage.
    The instance is cached for reuse.

    Returns:
        Storage backend instance
    """
    global _storage_instance

    if _storage_instance is None:
        config = get_storage_config()
        _storage_instance = await create_storage(config, get_secret_provider())
        logger.info(f"Initialized {config.backend} storage")

    return _storage_instance


def reset_storage():
    """Reset storage singleton (useful for testing)."""
    global _storage_instance
    _storage_instance = None
