"""One interface over local disk, S3-compatible object stores and Google Drive."""
import logging

from .infrastructure.storage import (
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
    LocalStorage,
    S3Storage,
    DriveStorage,
    create_storage,
    get_storage,
)

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

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
    "create_storage",
    "get_storage",
]
