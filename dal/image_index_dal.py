"""Async data access layer for the image index.

The index maps a stable image id to the concrete filenames currently on
disk. It is rebuilt from the directories at startup and kept in step with
every upload, rename and delete afterwards.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from models.image_record import ImageRecord
from utils.database_init import AsyncDatabaseInitializer


class ImageIndexDAL:
    """Data access layer for index rows.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    _COLUMNS = (
        "id",
        "original_filename",
        "thumbnail_filename",
        "display_name",
        "category",
        "created_at",
    )
    _COLUMN_LIST = ", ".join(_COLUMNS)
    _UPSERT_SQL = (
        f"INSERT OR REPLACE INTO images ({_COLUMN_LIST}) VALUES (?, ?, ?, ?, ?, ?)"
    )

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def upsert(self, record: ImageRecord) -> None:
        """Insert or replace the index row for `record.id`."""
        async with self._db.connection() as conn:
            await conn.execute(self._UPSERT_SQL, self._record_to_row(record))
            await conn.commit()

    async def replace_all(self, records: Iterable[ImageRecord]) -> int:
        """Drop every row and insert `records`. Returns the number indexed."""
        rows = [self._record_to_row(r) for r in records]
        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM images")
            await conn.executemany(self._UPSERT_SQL, rows)
            await conn.commit()
        return len(rows)

    async def get(self, image_id: str) -> Optional[ImageRecord]:
        """Return the indexed record for `image_id`, or None if not found."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM images WHERE id = ?",
                (image_id,),
            )
            row = await cur.fetchone()
            return self._row_to_record(row) if row else None

    async def rename(self, old_id: str, record: ImageRecord) -> None:
        """Replace the row for `old_id` with `record` in a single transaction."""
        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM images WHERE id = ?", (old_id,))
            await conn.execute(self._UPSERT_SQL, self._record_to_row(record))
            await conn.commit()

    async def delete(self, image_id: str) -> bool:
        """Delete the row for `image_id`. Returns True if a row was deleted."""
        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM images WHERE id = ?", (image_id,))
            await conn.commit()
            cur = await conn.execute("SELECT changes()")
            changed = await cur.fetchone()
            return bool(changed and changed[0] > 0)

    @staticmethod
    def _record_to_row(record: ImageRecord) -> tuple:
        return (
            record.id,
            record.original_filename,
            record.thumbnail_filename,
            record.display_name,
            record.category,
            record.created_at,
        )

    @staticmethod
    def _row_to_record(row: Sequence[object]) -> ImageRecord:
        """Convert a DB row tuple into an ImageRecord (size is read from disk elsewhere)."""
        return ImageRecord(
            id=row[0],
            original_filename=row[1],
            thumbnail_filename=row[2],
            display_name=row[3],
            category=row[4],
            created_at=row[5],
        )
