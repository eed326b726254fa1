"""Upload, listing, recategorisation and deletion of stored images.

`ImageService` ties the filename codec, thumbnail generator, directory
store, resolver and index together. It is created once at startup and
shared through `app.state.image_service`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from dal.image_index_dal import ImageIndexDAL
from models.errors import NotFoundError, ProcessingError, StorageError
from models.image_record import DeleteResult, ImageRecord
from services import filename_codec
from services.image_resolver import ImageResolver
from services.image_store import ImageStore
from services.thumbnail_generator import ThumbnailGenerator
from utils.media_validation import clean_category, validate_image_upload

LOGGER = logging.getLogger(__name__)


class ImageService:
    """Application-level image operations.

    Args:
        store: Originals/thumbnails directory pair.
        index: Index DAL (id -> filenames).
        generator: Thumbnail generator used inline during upload.
        max_file_size: Upload byte limit.
    """

    def __init__(self, store: ImageStore, index: ImageIndexDAL, generator: ThumbnailGenerator, max_file_size: int) -> None:
        self.store = store
        self.index = index
        self.generator = generator
        self.max_file_size = max_file_size
        self.resolver = ImageResolver(store, index)

    async def rebuild_index(self) -> int:
        """Re-populate the index from the directories. Returns the entry count."""
        records = await asyncio.to_thread(self.store.list_images)
        count = await self.index.replace_all(records)
        LOGGER.info("Indexed %d stored images", count)
        return count

    async def upload(self, filename: Optional[str], data: Optional[bytes], category: Optional[str] = None) -> ImageRecord:
        """Store an uploaded image and generate its thumbnail.

        A thumbnail failure fails the whole upload: the original is removed
        again so no orphan is left in the originals directory.

        Raises:
            ValidationError: For a missing, unsupported or oversized file or a bad category.
            StorageError: If the original cannot be written.
            ProcessingError: If the thumbnail cannot be generated.
        """
        validate_image_upload(filename, data, self.store.allowed_types, self.max_file_size)
        category = clean_category(category)

        stored_name = filename_codec.encode(filename, category)
        original_path = await self.store.save_original(stored_name, data)
        thumbnail_path = self.store.thumbnail_path(stored_name)

        # thumbnail generation is blocking -> run in thread
        ok = await asyncio.to_thread(self.generator.generate, str(original_path), str(thumbnail_path))
        if not ok:
            await asyncio.to_thread(self.store.discard_original, stored_name)
            raise ProcessingError("Failed to generate thumbnail", detail=f"Could not process {filename!r}")

        record = await asyncio.to_thread(self.store.build_record, stored_name, stored_name)
        await self.index.upsert(record)
        LOGGER.info("Stored upload %s as %s", filename, stored_name)
        return record

    async def list_images(self, search: Optional[str] = None) -> List[ImageRecord]:
        return await asyncio.to_thread(self.store.list_images, search)

    async def update_category(self, image_id: str, category: Optional[str]) -> ImageRecord:
        """Rename both files of `image_id` so their names carry `category`.

        The rename happens first and the index second; if the index update
        fails the rename is reverted. Legacy images get a new id as part of
        the rename, which is returned on the record.

        Raises:
            NotFoundError: If no original matches `image_id`.
            StorageError: If a rename or the index update fails.
        """
        category = clean_category(category)
        resolved = await self.resolver.resolve(image_id)
        if resolved.original is None:
            raise NotFoundError(f"Image not found: {image_id}")

        new_name = filename_codec.recategorize(resolved.original, category)
        if new_name != resolved.original:
            await asyncio.to_thread(self.store.rename_pair, resolved.original, resolved.thumbnail, new_name)

        thumbnail = new_name if resolved.thumbnail else None
        try:
            record = await asyncio.to_thread(self.store.build_record, new_name, thumbnail or "")
            await self.index.rename(filename_codec.decode(resolved.original).id, record)
        except Exception as exc:
            LOGGER.error("Index update failed for %s, reverting rename: %s", image_id, exc)
            if new_name != resolved.original:
                await asyncio.to_thread(
                    self.store.rename_pair, new_name, thumbnail, resolved.original, resolved.thumbnail
                )
            raise StorageError("Failed to update image category", detail=str(exc)) from exc

        LOGGER.info("Renamed %s to %s", resolved.original, new_name)
        return record

    async def delete(self, image_id: str) -> DeleteResult:
        return await self.resolver.delete(image_id)

    async def delete_many(self, image_ids: List[str]) -> List[DeleteResult]:
        return await self.resolver.delete_many(image_ids)
