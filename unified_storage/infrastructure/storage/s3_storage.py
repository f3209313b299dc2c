"""S3-compatible object storage implementation (AWS S3, MinIO, DigitalOcean Spaces)."""
import asyncio
import logging
from typing import BinaryIO, List, Optional, Tuple, Union
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError

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
    partition,
)

# S3 rejects DeleteObjects requests with more keys than this
MAX_DELETE_KEYS = 1000

MISSING_CODES = ('404', 'NoSuchKey', 'NotFound')
MISSING_BUCKET_CODES = ('NoSuchBucket',)
DENIED_CODES = ('403', 'AccessDenied', 'Forbidden', 'AllAccessDisabled')
BUCKET_OWNED_CODES = ('BucketAlreadyOwnedByYou',)


def _error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', 'Unknown')


class S3Storage(StorageInterface):
    """S3-compatible object storage backend.

    The first path segment names the bucket (lower-cased), the remaining
    segments joined with ``/`` form the object key. Folders do not exist as
    objects; ``list`` synthesizes them from key prefixes.

    Supports:
    - AWS S3
    - MinIO
    - DigitalOcean Spaces
    - Any S3-compatible API
    """

    def __init__(
        self,
        client,
        config: Optional[StorageConfig] = None,
        logger: Optional[logging.Logger] = None
    ):
        """Initialize S3 storage.

        Args:
            client: boto3 S3 client, owned by this instance
            config: Storage configuration (region is used for bucket creation)
            logger: Logger for operation events (module logger by default)
        """
        if client is None:
            raise ValueError("S3Storage requires a client")

        self.client = client
        self.config = config or StorageConfig(backend="s3")
        self.logger = logger or logging.getLogger(__name__)

    def _parse_path(self, path: str, operation: str) -> Tuple[str, str]:
        """Split a logical path into (bucket, key)."""
        segments = self._validate_path(path, operation)
        bucket = segments[0].lower()
        key = "/".join(segments[1:])
        return bucket, key

    async def _call(self, method: str, **kwargs):
        """Run a blocking client call in a worker thread."""
        return await asyncio.to_thread(getattr(self.client, method), **kwargs)

    def _translate_error(self, error: Exception, operation: str, path: str) -> StorageError:
        """Map a botocore error onto the storage error taxonomy."""
        self.logger.error(f"Error during {operation} on S3 path {path}: {error}")

        if isinstance(error, ClientError):
            code = _error_code(error)
            if code in MISSING_BUCKET_CODES:
                return ContainerNotFoundError(f"Bucket not found for {path}", path)
            if code in MISSING_CODES:
                return NotFoundError(f"Object not found: {path}", path)
            if code in DENIED_CODES:
                return PermissionDeniedError(f"Access denied for {path}: {error}", path)
            if code in ('BucketAlreadyExists',):
                return AlreadyExistsError(f"Bucket for {path} is owned by another account", path)
        return BackendUnavailableError(f"Failed to {operation} {path}: {error}", path)

    async def _bucket_exists(self, bucket: str) -> bool:
        try:
            await self._call("head_bucket", Bucket=bucket)
            return True
        except ClientError as e:
            if _error_code(e) in MISSING_CODES + MISSING_BUCKET_CODES:
                return False
            raise

    async def _object_exists(self, bucket: str, key: str) -> bool:
        try:
            await self._call("head_object", Bucket=bucket, Key=key)
            return True
        except ClientError as e:
            if _error_code(e) in MISSING_CODES + MISSING_BUCKET_CODES:
                return False
            raise

    async def _ensure_bucket(self, bucket: str) -> None:
        """Create bucket if it doesn't exist."""
        if await self._bucket_exists(bucket):
            return

        kwargs = {'Bucket': bucket}
        if self.config.region != 'us-east-1':
            kwargs['CreateBucketConfiguration'] = {
                'LocationConstraint': self.config.region
            }
        try:
            await self._call("create_bucket", **kwargs)
        except ClientError as e:
            # A concurrent add created it between the check and the create
            if _error_code(e) in BUCKET_OWNED_CODES:
                self.logger.debug(f"Bucket {bucket} was created concurrently")
                return
            raise
        self.logger.info(f"Created bucket: {bucket}")

    def _list_keys(self, bucket: str, prefix: str) -> List[str]:
        paginator = self.client.get_paginator('list_objects_v2')
        keys = []
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
            for obj in page.get('Contents', []):
                keys.append(obj['Key'])
        return keys

    async def _delete_keys(self, bucket: str, keys: List[str], path: str) -> None:
        for chunk in partition(keys, MAX_DELETE_KEYS):
            response = await self._call(
                "delete_objects",
                Bucket=bucket,
                Delete={'Objects': [{'Key': key} for key in chunk], 'Quiet': True}
            )
            errors = response.get('Errors') or []
            if errors:
                first = errors[0]
                message = f"Failed to delete {first.get('Key')} under {path}: {first.get('Message')}"
                self.logger.error(message)
                if first.get('Code') in DENIED_CODES:
                    raise PermissionDeniedError(message, path)
                raise BackendUnavailableError(message, path)

    def get_url(self, bucket: str, key: str) -> str:
        """Get the object URI for a bucket/key pair."""
        endpoint = getattr(self.client.meta, "endpoint_url", None) \
            or f"https://s3.{self.config.region}.amazonaws.com"
        return f"{endpoint.rstrip('/')}/{bucket}/{quote(key)}"

    async def add(
        self,
        path: str,
        content: Union[bytes, BinaryIO],
        overwrite: bool = False
    ) -> str:
        """Upload object, creating the bucket if needed."""
        bucket, key = self._parse_path(path, "add")
        if not key:
            self.logger.error(f"add: path {path!r} names a bucket but no object key")
            raise InvalidArgumentError(f"Path must include an object key: {path}", path)

        try:
            await self._ensure_bucket(bucket)

            if not overwrite and await self._object_exists(bucket, key):
                self.logger.warning(
                    f"Object with path {path} already exists and overwrite is not allowed."
                )
                raise AlreadyExistsError(f"Object {path} already exists.", path)

            if isinstance(content, (bytes, bytearray)):
                body = content
            else:
                body = await asyncio.to_thread(content.read)
            await self._call(
                "put_object",
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentType="application/octet-stream"
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "add", path) from e

        self.logger.info(f"Successfully uploaded to S3: {path}")
        return self.get_url(bucket, key)

    async def delete(self, path: str) -> None:
        """Delete an object, every object under a prefix, or a whole bucket."""
        bucket, key = self._parse_path(path, "delete")

        try:
            if not await self._bucket_exists(bucket):
                self.logger.warning(f"Bucket does not exist: {bucket}")
                raise ContainerNotFoundError(f"Bucket not found: {bucket}", path)

            if not key:
                keys = await asyncio.to_thread(self._list_keys, bucket, "")
                await self._delete_keys(bucket, keys, path)
                await self._call("delete_bucket", Bucket=bucket)
            elif await self._object_exists(bucket, key):
                await self._call("delete_object", Bucket=bucket, Key=key)
            else:
                keys = await asyncio.to_thread(self._list_keys, bucket, key + "/")
                if not keys:
                    self.logger.warning(f"Object does not exist: {path}")
                    raise NotFoundError(f"Object not found: {path}", path)
                await self._delete_keys(bucket, keys, path)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "delete", path) from e

        self.logger.info(f"Successfully deleted: {path}")

    async def exists(self, path: str) -> bool:
        """Check if object exists. A bare bucket path checks the bucket."""
        bucket, key = self._parse_path(path, "exists")

        try:
            if not key:
                return await self._bucket_exists(bucket)
            return await self._object_exists(bucket, key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "exists", path) from e

    async def list(self, path: str) -> List[StorageItem]:
        """List objects and synthesized folders directly under path."""
        bucket, key = self._parse_path(path, "list")
        prefix = f"{key}/" if key else ""

        def _list_entries():
            paginator = self.client.get_paginator('list_objects_v2')
            prefixes, keys = [], []
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix, Delimiter='/'):
                prefixes.extend(p['Prefix'] for p in page.get('CommonPrefixes', []))
                keys.extend(obj['Key'] for obj in page.get('Contents', []))
            return prefixes, keys

        try:
            if not await self._bucket_exists(bucket):
                self.logger.error(f"The specified bucket does not exist: {bucket}")
                raise ContainerNotFoundError(f"Bucket {bucket} does not exist.", path)

            prefixes, keys = await asyncio.to_thread(_list_entries)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "list", path) from e

        if key and not prefixes and not keys:
            self.logger.error(f"No objects found under prefix: {path}")
            raise ContainerNotFoundError(f"Folder not found: {path}", path)

        items = []
        for folder in prefixes:
            items.append(StorageItem(
                name=folder[len(prefix):].rstrip('/'),
                kind=StorageItemType.FOLDER
            ))
        for object_key in keys:
            # Skip the folder marker object itself
            if object_key == prefix:
                continue
            items.append(StorageItem(
                name=object_key[len(prefix):],
                kind=StorageItemType.FILE
            ))
        return items

    async def read(self, path: str) -> BinaryIO:
        """Get object as stream from S3."""
        bucket, key = self._parse_path(path, "read")
        if not key:
            self.logger.error(f"read: path {path!r} names a bucket but no object key")
            raise InvalidArgumentError(f"Path must include an object key: {path}", path)

        try:
            response = await self._call("get_object", Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, "read", path) from e

        # StreamingBody; the caller closes it
        return response['Body']
