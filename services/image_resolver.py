"""Lookup and deletion of stored images by client-supplied id.

Ids are resolved through the image index first (exact match). Ids the
index does not know fall back to a directory scan with "contains"
semantics: the first non-hidden entry whose name contains the id, or, for
legacy ``<base>_<timestamp>_<random>`` ids, the first entry containing both
the timestamp and random fragments. Two ids where one is a substring of the
other can resolve to the same file under the scan; ids produced by the
current codec are uuid4 strings and are always found in the index.
"""

from __future__ import annotations

import asyncio
import errno
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Optional

from dal.image_index_dal import ImageIndexDAL
from models.image_record import DeleteResult
from services.filename_codec import SEPARATOR, decode, extract_timestamp

if TYPE_CHECKING:
    from services.image_store import ImageStore

LOGGER = logging.getLogger(__name__)


@dataclass
class ResolvedImage:
    """Concrete entry names currently on disk for one id (either may be missing)."""

    original: Optional[str] = None
    thumbnail: Optional[str] = None


def _legacy_fragments(identifier: str) -> List[str]:
    timestamp = extract_timestamp(identifier)
    if timestamp is None:
        return []
    fragments = [str(timestamp)]
    tail = identifier.rsplit(SEPARATOR, 1)[-1]
    if tail and tail != fragments[0]:
        fragments.append(tail)
    return fragments


def find_matching_entry(entries: Iterable[str], identifier: str) -> Optional[str]:
    """Return the first entry whose name contains `identifier`.

    Falls back to the legacy positional fragments of `identifier` when no
    entry contains it whole. An empty identifier matches nothing.
    """
    if not identifier:
        return None
    entries = list(entries)
    for name in entries:
        if identifier in name:
            return name

    fragments = _legacy_fragments(identifier)
    if not fragments:
        return None
    for name in entries:
        if all(fragment in name for fragment in fragments):
            return name
    return None


def correlate_thumbnail(original: str, thumbnails: List[str]) -> Optional[str]:
    """Find the thumbnail entry that belongs to the original named `original`.

    Thumbnails are written under the original's own name; older layouts are
    matched by the uuid token, or by timestamp and random fragments.
    """
    if original in thumbnails:
        return original
    decoded = decode(original)
    if not decoded.legacy:
        return next((name for name in thumbnails if decoded.id in name), None)
    fragments = _legacy_fragments(os.path.splitext(original)[0])
    if not fragments:
        return None
    return next((name for name in thumbnails if all(f in name for f in fragments)), None)


class ImageResolver:
    """Map ids to on-disk entries and delete image pairs.

    Args:
        store: The originals/thumbnails directory pair.
        index: Index DAL consulted before any directory scan.
    """

    def __init__(self, store: "ImageStore", index: ImageIndexDAL) -> None:
        self.store = store
        self.index = index

    async def resolve(self, image_id: str) -> ResolvedImage:
        """Return the original/thumbnail entry names for `image_id`."""
        if not image_id:
            return ResolvedImage()

        entry = await self.index.get(image_id)
        if entry is not None:
            resolved = ResolvedImage(
                original=self._existing(self.store.original_path, entry.original_filename),
                thumbnail=self._existing(self.store.thumbnail_path, entry.thumbnail_filename),
            )
            if resolved.original or resolved.thumbnail:
                return resolved
            LOGGER.warning("Index entry for %s points at missing files, scanning directories", image_id)

        return await asyncio.to_thread(self._scan, image_id)

    @staticmethod
    def _existing(path_for, filename: Optional[str]) -> Optional[str]:
        return filename if filename and path_for(filename).is_file() else None

    def _scan(self, image_id: str) -> ResolvedImage:
        return ResolvedImage(
            original=find_matching_entry(self.store.visible_entries(self.store.original_dir), image_id),
            thumbnail=find_matching_entry(self.store.visible_entries(self.store.thumbnail_dir), image_id),
        )

    @staticmethod
    def delete_file(directory: Path, filename: str) -> bool:
        """Remove `directory/filename`, reporting success as a boolean.

        When the filesystem rejects the name as too long, the directory is
        scanned for an entry containing the name's embedded timestamp and the
        first such entry is removed instead.
        """
        try:
            os.remove(directory / filename)
            return True
        except FileNotFoundError:
            return False
        except OSError as exc:
            if exc.errno == errno.ENAMETOOLONG:
                LOGGER.warning("Filename too long to delete directly: %s", filename)
                return ImageResolver._delete_by_timestamp(directory, filename)
            LOGGER.error("Failed to delete %s: %s", directory / filename, exc)
            return False

    @staticmethod
    def _delete_by_timestamp(directory: Path, filename: str) -> bool:
        timestamp = extract_timestamp(filename)
        if timestamp is None:
            LOGGER.error("No timestamp in %s to match against", filename)
            return False
        try:
            for name in os.listdir(directory):
                if not name.startswith(".") and str(timestamp) in name:
                    os.remove(directory / name)
                    LOGGER.info("Deleted %s by timestamp match", name)
                    return True
        except OSError as exc:
            LOGGER.error("Timestamp scan of %s failed: %s", directory, exc)
            return False
        LOGGER.error("No file matching timestamp %s in %s", timestamp, directory)
        return False

    async def delete(self, image_id: str) -> DeleteResult:
        """Delete both halves of `image_id`; each half is attempted independently."""
        resolved = await self.resolve(image_id)
        result = DeleteResult(id=image_id)

        if resolved.original:
            result.original_deleted = await asyncio.to_thread(
                self.delete_file, self.store.original_dir, resolved.original
            )
        else:
            LOGGER.info("No original found for %s", image_id)

        if resolved.thumbnail:
            result.thumbnail_deleted = await asyncio.to_thread(
                self.delete_file, self.store.thumbnail_dir, resolved.thumbnail
            )
        else:
            LOGGER.info("No thumbnail found for %s", image_id)

        indexed_ids = {image_id}
        if resolved.original:
            indexed_ids.add(decode(resolved.original).id)
        try:
            for indexed_id in indexed_ids:
                await self.index.delete(indexed_id)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.error("Index cleanup failed for %s: %s", image_id, exc)
        return result

    async def delete_many(self, image_ids: List[str]) -> List[DeleteResult]:
        """Delete every id concurrently; a failure is recorded on that id's result."""

        async def _delete_one(image_id: str) -> DeleteResult:
            try:
                return await self.delete(image_id)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                LOGGER.error("Failed to delete image %s: %s", image_id, exc)
                return DeleteResult(id=image_id, error=str(exc))

        return list(await asyncio.gather(*(_delete_one(i) for i in image_ids)))
