"""Originals/thumbnails directory pair.

Each logical image is one entry in the originals directory plus one entry
in the thumbnails directory; the two are correlated by the unique token in
their names rather than by any foreign key. This module owns the raw
filesystem work: enumerating entries, writing originals, renaming a pair
and building `ImageRecord`s for a listing.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional, Sequence

import aiofiles

from models.errors import StorageError
from models.image_record import ImageRecord
from services.filename_codec import decode
from services.image_resolver import correlate_thumbnail

LOGGER = logging.getLogger(__name__)

HIDDEN_PREFIX = "."


class ImageStore:
    """Filesystem operations over the originals and thumbnails directories.

    Args:
        original_dir: Directory holding uploaded originals.
        thumbnail_dir: Directory holding generated thumbnails.
        allowed_types: Extensions (with dot, lower-case) counted as images.
    """

    def __init__(self, original_dir: Path | str, thumbnail_dir: Path | str, allowed_types: Sequence[str]) -> None:
        self.original_dir = Path(original_dir)
        self.thumbnail_dir = Path(thumbnail_dir)
        self.allowed_types = tuple(t.lower() for t in allowed_types)

    def is_image_entry(self, name: str) -> bool:
        """True for non-hidden entries whose extension is an allowed image type."""
        return not name.startswith(HIDDEN_PREFIX) and os.path.splitext(name)[1].lower() in self.allowed_types

    @staticmethod
    def visible_entries(directory: Path) -> List[str]:
        """Sorted non-hidden entry names of `directory`."""
        return sorted(name for name in os.listdir(directory) if not name.startswith(HIDDEN_PREFIX))

    def original_entries(self) -> List[str]:
        """Names in the originals directory that count as stored images."""
        return [name for name in self.visible_entries(self.original_dir) if self.is_image_entry(name)]

    def thumbnail_entries(self) -> List[str]:
        """Non-hidden names in the thumbnails directory."""
        return self.visible_entries(self.thumbnail_dir)

    def original_path(self, filename: str) -> Path:
        return self.original_dir / filename

    def thumbnail_path(self, filename: str) -> Path:
        return self.thumbnail_dir / filename

    async def save_original(self, filename: str, data: bytes) -> Path:
        """Write uploaded bytes to the originals directory and return the path."""
        path = self.original_path(filename)
        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as exc:
            raise StorageError("Failed to store uploaded image", detail=str(exc)) from exc
        return path

    def discard_original(self, filename: str) -> None:
        """Remove an original whose upload did not complete."""
        try:
            os.remove(self.original_path(filename))
        except FileNotFoundError:
            pass
        except OSError as exc:
            LOGGER.error("Could not remove incomplete upload %s: %s", filename, exc)

    def rename_pair(
        self,
        original: str,
        thumbnail: Optional[str],
        new_name: str,
        new_thumbnail: Optional[str] = None,
    ) -> None:
        """Rename an original (and its thumbnail, if any) to `new_name`.

        The thumbnail goes to `new_thumbnail` when given, else to `new_name`.
        If the thumbnail rename fails the original rename is rolled back, so
        the pair never ends up split across two names.

        Raises:
            StorageError: If either rename fails.
        """
        try:
            os.rename(self.original_path(original), self.original_path(new_name))
        except OSError as exc:
            raise StorageError("Failed to rename original image", detail=str(exc)) from exc

        if thumbnail is None:
            return
        try:
            os.rename(self.thumbnail_path(thumbnail), self.thumbnail_path(new_thumbnail or new_name))
        except OSError as exc:
            LOGGER.error("Thumbnail rename failed for %s, rolling back original: %s", thumbnail, exc)
            os.rename(self.original_path(new_name), self.original_path(original))
            raise StorageError("Failed to rename thumbnail image", detail=str(exc)) from exc

    def build_record(self, original: str, thumbnail: str) -> ImageRecord:
        """Decode `original` and read its size/mtime into an `ImageRecord`."""
        decoded = decode(original)
        stat = os.stat(self.original_path(original))
        return ImageRecord(
            id=decoded.id,
            display_name=decoded.display_name,
            original_filename=original,
            thumbnail_filename=thumbnail,
            category=decoded.category,
            extension=decoded.extension,
            file_size=stat.st_size,
            created_at=stat.st_mtime,
        )

    def list_images(self, search: Optional[str] = None) -> List[ImageRecord]:
        """Return every stored image that has a correlated thumbnail.

        Entries that fail to decode/stat, or have no thumbnail yet, are logged
        and skipped. `search` is a case-insensitive substring filter on the
        display name. Results are ordered newest first by mtime, which is
        best-effort only.
        """
        thumbnails = self.thumbnail_entries()
        needle = search.lower() if search else None
        records: List[ImageRecord] = []

        for name in self.original_entries():
            try:
                thumbnail = correlate_thumbnail(name, thumbnails)
                if thumbnail is None:
                    LOGGER.warning("Skipping %s: no matching thumbnail", name)
                    continue
                record = self.build_record(name, thumbnail)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                LOGGER.error("Error while reading image %s: %s", name, exc)
                continue
            if needle and needle not in record.display_name.lower():
                continue
            records.append(record)

        records.sort(key=lambda r: r.created_at or 0, reverse=True)
        return records
