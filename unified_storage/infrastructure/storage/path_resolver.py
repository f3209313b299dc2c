"""Resolve slash-delimited paths against an ID-addressed folder hierarchy.

Backends like Google Drive address entries by opaque IDs, and a folder may
hold several entries with the same name. The resolver walks a logical path
one segment at a time, starting at a well-known root ID:

    current = root
    for segment in segments:
        matches = children of current named segment
        no match  -> create a folder (write paths) or fail naming the segment
        otherwise -> current = first match

The terminal segment of read/delete paths keeps every match so that
duplicate-named entries can all be deleted together.
"""
import logging
from typing import List, Optional, Protocol, Sequence, Tuple

from .base import (
    DriveStorageItem,
    InvalidArgumentError,
    PathSegmentNotFoundError,
    StorageItemType,
    split_path,
)

logger = logging.getLogger(__name__)


class DriveNodeSource(Protocol):
    """Lookup/creation primitives the resolver needs from a backend."""

    async def find_children(
        self,
        parent_id: str,
        name: Optional[str] = None,
        kind: Optional[StorageItemType] = None
    ) -> List[DriveStorageItem]:
        ...

    async def create_folder(self, parent_id: str, name: str) -> DriveStorageItem:
        ...


class DrivePathResolver:
    """Iterative path -> node ID resolution."""

    def __init__(self, nodes: DriveNodeSource, root_id: str = "root"):
        self.nodes = nodes
        self.root_id = root_id

    @staticmethod
    def _segments(path: str) -> List[str]:
        segments = split_path(path or "")
        if not segments:
            raise InvalidArgumentError(f"Invalid path: {path!r}", path)
        return segments

    async def resolve_folder(
        self,
        segments: Sequence[str],
        create: bool = False,
        path: Optional[str] = None
    ) -> str:
        """Walk every segment as a folder and return the last folder's ID.

        Args:
            segments: Folder names from the root downwards
            create: Create missing folders instead of failing
            path: Original logical path, for error messages

        Raises:
            PathSegmentNotFoundError: If a folder is missing and create is False
        """
        path = path if path is not None else "/".join(segments)
        current = self.root_id

        for segment in segments:
            matches = await self.nodes.find_children(
                current, segment, StorageItemType.FOLDER
            )
            if matches:
                # Duplicate folder names are tolerated; the first one wins
                current = matches[0].id
            elif create:
                folder = await self.nodes.create_folder(current, segment)
                logger.info(f"Created folder '{segment}' ({folder.id}) under {current}")
                current = folder.id
            else:
                raise PathSegmentNotFoundError(segment, path)

        return current

    async def resolve_parent(self, path: str, create: bool = False) -> Tuple[str, str]:
        """Resolve everything but the last segment.

        Returns:
            Tuple of (parent folder ID, leaf name)
        """
        segments = self._segments(path)
        parent_id = await self.resolve_folder(segments[:-1], create=create, path=path)
        return parent_id, segments[-1]

    async def resolve_all(
        self,
        path: str,
        kind: Optional[StorageItemType] = None
    ) -> List[DriveStorageItem]:
        """Return every entry matching the last segment (possibly none).

        Raises:
            PathSegmentNotFoundError: If an intermediate folder is missing
        """
        parent_id, name = await self.resolve_parent(path)
        return await self.nodes.find_children(parent_id, name, kind)

    async def resolve_first(
        self,
        path: str,
        kind: Optional[StorageItemType] = None
    ) -> DriveStorageItem:
        """Return the first entry matching the last segment.

        Raises:
            PathSegmentNotFoundError: If any segment is missing
        """
        matches = await self.resolve_all(path, kind)
        if not matches:
            raise PathSegmentNotFoundError(self._segments(path)[-1], path)
        return matches[0]
