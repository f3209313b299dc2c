"""Google Drive storage implementation.

Drive addresses files by ID, not by path, and allows several entries with the
same name inside one folder. Paths are resolved segment by segment through
``DrivePathResolver``; this module supplies the lookup primitives and maps
the five storage operations onto Drive v3 calls.
"""
import asyncio
import io
import logging
import re
from typing import BinaryIO, List, Optional, Sequence, Union

from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload
from httplib2 import HttpLib2Error

from .base import (
    StorageInterface,
    StorageConfig,
    StorageError,
    StorageItem,
    StorageItemType,
    DriveStorageItem,
    AlreadyExistsError,
    BackendUnavailableError,
    ContainerNotFoundError,
    InvalidArgumentError,
    NotFoundError,
    PathSegmentNotFoundError,
    PermissionDeniedError,
    partition,
)
from .path_resolver import DrivePathResolver

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
OCTET_STREAM_MIME_TYPE = "application/octet-stream"

SHARE_LINK_TEMPLATE = "https://drive.google.com/file/d/{file_id}/view"
SHARE_LINK_PATTERN = re.compile(r"/file/d/(.*?)/view")

ITEM_FIELDS = "nextPageToken, files(id, name, mimeType, parents)"
PAGE_SIZE = 100

# Names the configured root folder itself
ROOT_ALIAS = "root"

RATE_LIMIT_REASONS = {
    "rateLimitExceeded",
    "userRateLimitExceeded",
    "dailyLimitExceeded",
    "quotaExceeded",
}

DRIVE_ERRORS = (HttpError, GoogleAuthError, HttpLib2Error, OSError)


def extract_file_id(link: str) -> Optional[str]:
    """Return the file ID embedded in a Drive sharing link, if any."""
    match = SHARE_LINK_PATTERN.search(link or "")
    if match:
        return match.group(1)
    return None


def _escape(value: str) -> str:
    """Escape a literal for use inside a Drive query string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _error_reasons(error: HttpError) -> set:
    details = getattr(error, "error_details", None)
    if not isinstance(details, list):
        return set()
    return {detail.get("reason") for detail in details if isinstance(detail, dict)}


class DriveStorage(StorageInterface):
    """Google Drive storage backend.

    - Every path segment is resolved to a folder ID from the root folder
    - Missing folders are created on ``add``
    - Uploaded files are shared with anyone holding the link, and ``add``
      returns that link
    - ``delete`` removes every same-named match, in concurrent batches
    """

    def __init__(
        self,
        service,
        config: Optional[StorageConfig] = None,
        logger: Optional[logging.Logger] = None
    ):
        """Initialize Drive storage.

        Args:
            service: Drive v3 ``Resource`` from ``googleapiclient.discovery.build``
            config: Storage configuration (root folder, delete batch size)
            logger: Logger for operation events (module logger by default)
        """
        if service is None:
            raise ValueError("DriveStorage requires a Drive service")

        self.service = service
        self.config = config or StorageConfig(backend="gdrive")
        self.delete_batch_threshold = self.config.delete_batch_threshold
        self.root_id = self.config.root_folder_id
        self.logger = logger or logging.getLogger(__name__)
        self.resolver = DrivePathResolver(self, self.root_id)

    async def _execute(self, request):
        """Run a blocking Drive request in a worker thread."""
        return await asyncio.to_thread(request.execute)

    def _translate_error(self, error: Exception, operation: str, path: str) -> StorageError:
        """Map a Drive/transport error onto the storage error taxonomy."""
        self.logger.error(f"Error during {operation} on Google Drive path {path}: {error}")

        if isinstance(error, HttpError):
            status = int(error.resp.status)
            if status == 404:
                return NotFoundError(f"Not found on Google Drive: {path}", path)
            if status == 403 and not (_error_reasons(error) & RATE_LIMIT_REASONS):
                return PermissionDeniedError(f"Access denied on Google Drive for {path}: {error}", path)
        return BackendUnavailableError(f"Failed to {operation} {path} on Google Drive: {error}", path)

    @staticmethod
    def _to_item(file: dict, parent_id: str) -> DriveStorageItem:
        kind = (
            StorageItemType.FOLDER
            if file.get("mimeType") == FOLDER_MIME_TYPE
            else StorageItemType.FILE
        )
        return DriveStorageItem(
            name=file.get("name", ""),
            kind=kind,
            id=file["id"],
            parent_id=parent_id,
        )

    def _reject_root_alias(self, segments: List[str], path: str, operation: str) -> None:
        """The root folder itself can't be written over or deleted."""
        if segments == [ROOT_ALIAS]:
            self.logger.error(f"{operation}: path {path!r} names the root folder")
            raise InvalidArgumentError(f"Cannot {operation} the root folder: {path}", path)

    # Node lookups used by DrivePathResolver

    async def find_children(
        self,
        parent_id: str,
        name: Optional[str] = None,
        kind: Optional[StorageItemType] = None
    ) -> List[DriveStorageItem]:
        """List non-trashed children of a folder, optionally filtered."""
        clauses = [f"'{_escape(parent_id)}' in parents", "trashed = false"]
        if name is not None:
            clauses.append(f"name = '{_escape(name)}'")
        if kind is StorageItemType.FOLDER:
            clauses.append(f"mimeType = '{FOLDER_MIME_TYPE}'")
        elif kind is StorageItemType.FILE:
            clauses.append(f"mimeType != '{FOLDER_MIME_TYPE}'")
        query = " and ".join(clauses)

        items = []
        page_token = None
        while True:
            request = self.service.files().list(
                q=query,
                fields=ITEM_FIELDS,
                pageSize=PAGE_SIZE,
                pageToken=page_token,
                spaces="drive",
            )
            response = await self._execute(request)
            items.extend(self._to_item(f, parent_id) for f in response.get("files", []))
            page_token = response.get("nextPageToken")
            if not page_token:
                break
        return items

    async def create_folder(self, parent_id: str, name: str) -> DriveStorageItem:
        """Create a folder under parent_id."""
        body = {"name": name, "mimeType": FOLDER_MIME_TYPE, "parents": [parent_id]}
        request = self.service.files().create(body=body, fields="id, name, mimeType")
        folder = await self._execute(request)
        return self._to_item(folder, parent_id)

    # Deletion

    async def _delete_by_id(self, file_id: str) -> None:
        if not file_id:
            raise ValueError("File ID cannot be null or empty.")
        try:
            await self._execute(self.service.files().delete(fileId=file_id))
        except DRIVE_ERRORS as e:
            self.logger.error(f"Error deleting file with ID {file_id} on Google Drive: {e}")
            raise

    async def _delete_batch(self, file_ids: Sequence[str]) -> None:
        """Delete one batch concurrently.

        Every delete in the batch runs to completion before the first failure
        (in batch order) is raised.
        """
        results = await asyncio.gather(
            *(self._delete_by_id(file_id) for file_id in file_ids),
            return_exceptions=True
        )
        for result in results:
            if isinstance(result, Exception):
                raise result

    async def _delete_in_batches(self, file_ids: Sequence[str]) -> None:
        for batch in partition(list(file_ids), self.delete_batch_threshold):
            await self._delete_batch(batch)

    # StorageInterface

    async def add(
        self,
        path: str,
        content: Union[bytes, BinaryIO],
        overwrite: bool = False
    ) -> str:
        """Upload a file, creating missing folders, and return its sharing link."""
        segments = self._validate_path(path, "add")
        self._reject_root_alias(segments, path, "add")

        if isinstance(content, (bytes, bytearray)):
            stream = io.BytesIO(content)
        elif not (hasattr(content, "seekable") and content.seekable()):
            stream = io.BytesIO(await asyncio.to_thread(content.read))
        else:
            stream = content

        try:
            parent_id, name = await self.resolver.resolve_parent(path, create=True)

            existing = await self.find_children(parent_id, name)
            if existing:
                if not overwrite:
                    self.logger.warning(
                        f"File with path {path} already exists and overwrite is not allowed."
                    )
                    raise AlreadyExistsError(f"File {path} already exists.", path)
                if any(item.is_folder for item in existing):
                    self.logger.warning(f"A folder occupies {path}; refusing to replace it")
                    raise AlreadyExistsError(f"A folder already exists at {path}.", path)

                await self._delete_in_batches([item.id for item in existing])
                self.logger.info(f"Overwriting existing file in Google Drive: {path}")

            media = MediaIoBaseUpload(stream, mimetype=OCTET_STREAM_MIME_TYPE, resumable=True)
            request = self.service.files().create(
                body={"name": name, "parents": [parent_id]},
                media_body=media,
                fields="id",
            )
            uploaded = await self._execute(request)
            file_id = uploaded["id"]

            # Anyone with the link can view the file
            permission = {"type": "anyone", "role": "reader"}
            await self._execute(
                self.service.permissions().create(fileId=file_id, body=permission)
            )
        except DRIVE_ERRORS as e:
            raise self._translate_error(e, "add", path) from e

        shareable_link = SHARE_LINK_TEMPLATE.format(file_id=file_id)
        self.logger.info(
            f"Successfully uploaded to Google Drive with shareable link: {shareable_link}"
        )
        return shareable_link

    async def delete(self, path: str) -> None:
        """Delete every entry matching path, folders included (recursively)."""
        segments = self._validate_path(path, "delete")
        self._reject_root_alias(segments, path, "delete")

        try:
            matches = await self.resolver.resolve_all(path)
            if not matches:
                raise NotFoundError(f"File not found on Google Drive: {path}", path)

            await self._delete_in_batches([item.id for item in matches])
        except NotFoundError:
            self.logger.warning(f"File not found on Google Drive for the given path: {path}")
            raise
        except DRIVE_ERRORS as e:
            raise self._translate_error(e, "delete", path) from e

        self.logger.info(f"Deleted {len(matches)} item(s) from Google Drive: {path}")

    async def exists(self, path: str) -> bool:
        """Check if any entry with the path's name exists in its parent folder."""
        segments = self._validate_path(path, "exists")
        if segments == [ROOT_ALIAS]:
            return True

        try:
            parent_id, name = await self.resolver.resolve_parent(path)
            matches = await self.find_children(parent_id, name)
        except PathSegmentNotFoundError:
            return False
        except DRIVE_ERRORS as e:
            raise self._translate_error(e, "exists", path) from e

        return bool(matches)

    async def list(self, path: str) -> List[StorageItem]:
        """List the items directly inside a folder."""
        segments = self._validate_path(path, "list")

        try:
            if segments == [ROOT_ALIAS]:
                folder_id = self.root_id
            else:
                folder_id = await self.resolver.resolve_folder(segments, path=path)
            return await self.find_children(folder_id)
        except PathSegmentNotFoundError as e:
            self.logger.error(f"Folder not found on Google Drive: {path} (missing '{e.segment}')")
            raise ContainerNotFoundError(
                f"Folder not found: {path} (segment '{e.segment}' does not exist)", path
            ) from e
        except DRIVE_ERRORS as e:
            raise self._translate_error(e, "list", path) from e

    async def read(self, path: str) -> BinaryIO:
        """Download a file into memory and return it as a stream."""
        segments = self._validate_path(path, "read")
        if segments == [ROOT_ALIAS]:
            self.logger.warning(f"read: {path!r} names the root folder, not a file")
            raise NotFoundError(f"File not found on Google Drive: {path}", path)

        try:
            item = await self.resolver.resolve_first(path, StorageItemType.FILE)
            content = await self._execute(self.service.files().get_media(fileId=item.id))
        except NotFoundError:
            self.logger.warning(f"File not found on Google Drive: {path}")
            raise
        except DRIVE_ERRORS as e:
            raise self._translate_error(e, "read", path) from e

        return io.BytesIO(content)
