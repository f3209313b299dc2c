"""Abstract storage interface."""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Sequence, Union


class StorageError(Exception):
    """Base exception for storage operations."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class InvalidArgumentError(StorageError, ValueError):
    """Path is missing, blank or has no segments."""
    pass


class AlreadyExistsError(StorageError):
    """Entry exists and overwrite was not requested."""
    pass


class NotFoundError(StorageError):
    """Entry not found in storage."""
    pass


class ContainerNotFoundError(NotFoundError):
    """Directory, bucket or folder not found."""
    pass


class PathSegmentNotFoundError(NotFoundError):
    """One segment of a hierarchical path could not be resolved."""

    def __init__(self, segment: str, path: Optional[str] = None):
        super().__init__(f"Path segment '{segment}' not found in {path!r}", path)
        self.segment = segment


class BackendUnavailableError(StorageError):
    """Backend call failed for transport, auth or quota reasons."""
    pass


class PermissionDeniedError(StorageError):
    """Backend rejected the operation."""
    pass


class StorageItemType(Enum):
    FILE = "File"
    FOLDER = "Folder"


@dataclass(frozen=True)
class StorageItem:
    """One entry returned by ``list``."""
    name: str
    kind: StorageItemType

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.name}"

    @property
    def is_folder(self) -> bool:
        return self.kind is StorageItemType.FOLDER


@dataclass(frozen=True)
class DriveStorageItem(StorageItem):
    """Listing entry for ID-addressed backends."""
    id: str = ""
    parent_id: str = ""


@dataclass
class StorageConfig:
    """Storage configuration."""
    backend: str  # 'local', 's3', 'minio', 'gdrive'

    # Local storage settings
    base_path: Optional[Path] = None

    # S3/MinIO settings
    endpoint_url: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: str = "us-east-1"
    use_ssl: bool = True

    # Name of the secret holding the connection string / credential bundle
    connection_secret: Optional[str] = None

    # Google Drive settings
    root_folder_id: str = "root"
    delete_batch_threshold: int = 50

    def __post_init__(self):
        self.backend = self.backend.lower()
        if self.base_path is not None:
            self.base_path = Path(self.base_path)
        if self.delete_batch_threshold < 1:
            raise ValueError("delete_batch_threshold must be at least 1")


def split_path(path: str) -> List[str]:
    """Split a logical path into its non-empty segments."""
    return [segment for segment in path.split("/") if segment]


def partition(items: Sequence, size: int) -> Iterator[Sequence]:
    """Yield consecutive slices of ``items`` holding at most ``size`` elements."""
    for start in range(0, len(items), size):
        yield items[start:start + size]


class StorageInterface(ABC):
    """Abstract interface for file storage operations.

    Implementations:
    - LocalStorage: Filesystem storage
    - S3Storage: AWS S3 / MinIO / any S3-compatible object store
    - DriveStorage: Google Drive (ID-addressed hierarchy)

    Paths are slash-delimited logical paths; what a segment means depends on
    the backend. Every operation rejects a blank path with
    ``InvalidArgumentError`` before touching the backend.
    """

    logger: logging.Logger

    def _validate_path(self, path: Optional[str], operation: str) -> List[str]:
        """Reject blank paths and return the path's segments."""
        if path is None or not path.strip():
            self.logger.error(f"{operation}: the provided path is null or empty")
            raise InvalidArgumentError("Path cannot be null or empty.", path)

        segments = split_path(path)
        if not segments:
            self.logger.error(f"{operation}: path {path!r} has no segments")
            raise InvalidArgumentError(f"Invalid path: {path!r}", path)
        return segments

    @abstractmethod
    async def add(
        self,
        path: str,
        content: Union[bytes, BinaryIO],
        overwrite: bool = False
    ) -> str:
        """Write content to storage.

        Args:
            path: Logical path of the entry
            content: File content as bytes or file-like object
            overwrite: Replace an existing entry instead of failing

        Returns:
            Backend-specific locator of the written entry

        Raises:
            AlreadyExistsError: If the entry exists and overwrite is False
        """
        pass

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Delete a file or container (recursively) from storage.

        Raises:
            NotFoundError: If nothing exists at path
        """
        pass

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check if an entry exists in storage.

        Returns:
            True if the entry exists. Never raises for a missing entry.
        """
        pass

    @abstractmethod
    async def list(self, path: str) -> List[StorageItem]:
        """List the immediate children of a container.

        Raises:
            ContainerNotFoundError: If path is not an existing container
        """
        pass

    @abstractmethod
    async def read(self, path: str) -> BinaryIO:
        """Open an entry for reading.

        The caller owns the returned stream and must close it.

        Raises:
            NotFoundError: If the entry doesn't exist
        """
        pass

    async def download(self, path: str) -> bytes:
        """Read an entry's full content as bytes."""
        stream = await self.read(path)
        try:
            return await asyncio.to_thread(stream.read)
        finally:
            stream.close()
