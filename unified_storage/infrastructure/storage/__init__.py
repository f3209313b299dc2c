"""Storage abstraction layer for file operations.

Supports multiple backends: local filesystem, S3/MinIO, Google Drive.
"""
from .base import (
    StorageInterface,
    StorageConfig,
    StorageItem,
    StorageItemType,
    DriveStorageItem,
    StorageError,
    InvalidArgumentError,
    AlreadyExistsError,
    NotFoundError,
    ContainerNotFoundError,
    PathSegmentNotFoundError,
    BackendUnavailableError,
    PermissionDeniedError,
)
from .local_storage import LocalStorage
from .s3_storage import S3Storage
from .drive_storage import DriveStorage, extract_file_id
from .path_resolver import DrivePathResolver
from .endpoints import S3EndpointFactory, DriveEndpointFactory, parse_connection_string
from .factory import (
    create_storage,
    get_storage,
    get_storage_config,
    load_storage_config,
    reset_storage,
)

__all__ = [
    "StorageInterface",
    "StorageConfig",
    "StorageItem",
    "StorageItemType",
    "DriveStorageItem",
    "StorageError",
    "InvalidArgumentError",
    "AlreadyExistsError",
    "NotFoundError",
    "ContainerNotFoundError",
    "PathSegmentNotFoundError",
    "BackendUnavailableError",
    "PermissionDeniedError",
    "LocalStorage",
    "S3Storage",
    "DriveStorage",
    "extract_file_id",
    "DrivePathResolver",
    "S3EndpointFactory",
    "DriveEndpointFactory",
    "parse_connection_string",
    "create_storage",
    "get_storage",
    "get_storage_config",
    "load_storage_config",
    "reset_storage",
]
