"""Local filesystem storage implementation."""
import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

import aiofiles

from .base import (
    StorageInterface,
    StorageConfig,
    StorageError,
    StorageItem,
    StorageItemType,
    AlreadyExistsError,
    BackendUnavailableError,
    ContainerNotFoundError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
)

CHUNK_SIZE = 8192

# Operations that may not target base_path itself
ROOT_PROTECTED_OPERATIONS = ("add", "delete")


class LocalStorage(StorageInterface):
    """Local filesystem storage backend.

    Logical paths are native filesystem paths. When the config carries a
    ``base_path``, relative paths are resolved under it and paths escaping
    it are rejected.
    """

    def __init__(
        self,
        config: Optional[StorageConfig] = None,
        logger: Optional[logging.Logger] = None
    ):
        """Initialize local storage.

        Args:
            config: Storage configuration, optionally with base_path
            logger: Logger for operation events (module logger by default)
        """
        if config is None:
            config = StorageConfig(backend="local")
        if config.backend != "local":
            raise ValueError(f"LocalStorage requires backend='local', got '{config.backend}'")

        self.config = config
        self.base_path = Path(config.base_path).resolve() if config.base_path else None
        self.logger = logger or logging.getLogger(__name__)

    def _get_path(self, path: str, operation: str) -> Path:
        """Validate a logical path and map it onto the filesystem."""
        self._validate_path(path, operation)

        if self.base_path is None:
            return Path(path)

        full_path = (self.base_path / path.lstrip("/")).resolve()
        if full_path != self.base_path and self.base_path not in full_path.parents:
            self.logger.error(f"{operation}: path {path!r} escapes storage root {self.base_path}")
            raise InvalidArgumentError(f"Path escapes storage root: {path}", path)
        if full_path == self.base_path and operation in ROOT_PROTECTED_OPERATIONS:
            self.logger.error(f"{operation}: path {path!r} resolves to the storage root")
            raise InvalidArgumentError(f"Cannot {operation} the storage root: {path}", path)
        return full_path

    def _translate_error(self, error: OSError, operation: str, path: str) -> StorageError:
        """Map an OSError onto the storage error taxonomy."""
        self.logger.error(f"Error during {operation} on local disk path {path}: {error}")

        if isinstance(error, FileNotFoundError):
            return NotFoundError(f"No file or directory found with the specified path: {path}", path)
        if isinstance(error, FileExistsError):
            return AlreadyExistsError(f"File {path} already exists.", path)
        if isinstance(error, PermissionError):
            return PermissionDeniedError(f"Permission denied for {path}: {error}", path)
        if isinstance(error, (IsADirectoryError, NotADirectoryError)):
            return InvalidArgumentError(f"Invalid path for {operation}: {path}: {error}", path)
        return BackendUnavailableError(f"Failed to {operation} {path}: {error}", path)

    async def add(
        self,
        path: str,
        content: Union[bytes, BinaryIO],
        overwrite: bool = False
    ) -> str:
        """Write file to local filesystem, creating parent directories."""
        file_path = self._get_path(path, "add")

        if not overwrite and file_path.is_file():
            self.logger.warning(
                f"File with path {path} already exists and overwrite is not allowed."
            )
            raise AlreadyExistsError(f"File {path} already exists.", path)

        temp_path = None
        try:
            directory = file_path.parent
            if not directory.exists():
                directory.mkdir(parents=True, exist_ok=True)
                self.logger.info(f"Created directory: {directory}")

            # A failed write leaves any previous content intact
            with tempfile.NamedTemporaryFile(
                dir=directory, prefix=f".{file_path.name}.", suffix=".tmp", delete=False
            ) as tmp:
                temp_path = Path(tmp.name)

            async with aiofiles.open(temp_path, 'wb') as f:
                if isinstance(content, (bytes, bytearray)):
                    await f.write(content)
                else:
                    # Copy from file-like object
                    while True:
                        chunk = await asyncio.to_thread(content.read, CHUNK_SIZE)
                        if not chunk:
                            break
                        if isinstance(chunk, str):
                            chunk = chunk.encode('utf-8')
                        await f.write(chunk)

            os.replace(temp_path, file_path)
            temp_path = None

        except OSError as e:
            raise self._translate_error(e, "add", path) from e
        finally:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)

        self.logger.info(f"Successfully wrote to: {path}")
        return str(file_path)

    async def delete(self, path: str) -> None:
        """Delete a file, or a directory with everything below it."""
        file_path = self._get_path(path, "delete")

        try:
            if file_path.is_file() or file_path.is_symlink():
                file_path.unlink()
            elif file_path.is_dir():
                await asyncio.to_thread(shutil.rmtree, file_path)
            else:
                self.logger.warning(f"The specified path does not exist: {path}")
                raise NotFoundError(
                    f"No file or directory found with the specified path: {path}", path
                )
        except OSError as e:
            raise self._translate_error(e, "delete", path) from e

        self.logger.info(f"Successfully deleted: {path}")

    async def exists(self, path: str) -> bool:
        """Check if a regular file exists at path."""
        file_path = self._get_path(path, "exists")
        return file_path.is_file()

    async def list(self, path: str) -> List[StorageItem]:
        """List the files and folders directly inside a directory."""
        dir_path = self._get_path(path, "list")

        if not dir_path.is_dir():
            self.logger.error(f"The specified directory does not exist: {path}")
            raise ContainerNotFoundError(f"Directory not found: {path}", path)

        try:
            entries = await asyncio.to_thread(lambda: sorted(dir_path.iterdir()))
        except OSError as e:
            raise self._translate_error(e, "list", path) from e

        items = []
        for entry in entries:
            kind = StorageItemType.FOLDER if entry.is_dir() else StorageItemType.FILE
            items.append(StorageItem(name=entry.name, kind=kind))
        return items

    async def read(self, path: str) -> BinaryIO:
        """Open file for reading."""
        file_path = self._get_path(path, "read")

        if not file_path.is_file():
            self.logger.warning(f"File not found on local disk: {path}")
            raise NotFoundError(f"File not found: {path}", path)

        try:
            return open(file_path, 'rb')
        except OSError as e:
            raise self._translate_error(e, "read", path) from e
