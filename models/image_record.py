from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class DecodedFilename:
    """Semantic fields recovered from a stored filename.

    Attributes:
        id: Unique token (uuid4 string) or, for legacy names, the filename stem.
        base: Sanitised base name (display stem) without extension.
        extension: Lower-cased extension including the leading dot (may be empty).
        category: Optional category label, None when no category segment exists.
        timestamp: Optional embedded epoch-milliseconds value.
        legacy: True if the name predates the uuid-based scheme.
    """

    id: str
    base: str
    extension: str
    category: Optional[str] = None
    timestamp: Optional[int] = None
    legacy: bool = False

    @property
    def display_name(self) -> str:
        return f"{self.base}{self.extension}"


@dataclass
class ImageRecord:
    """An image reconstructed from the originals/thumbnails directory pair.

    Attributes:
        id: Stable identifier taken from the stored filename.
        display_name: Human-readable name (sanitised stem + extension).
        original_filename: Entry name in the originals directory.
        thumbnail_filename: Correlated entry name in the thumbnails directory.
        category: Optional category label.
        extension: File suffix of the original.
        file_size: Size of the original in bytes, read at query time.
        created_at: Unix timestamp (seconds, float) from the original's mtime.
    """

    id: str
    display_name: str
    original_filename: str
    thumbnail_filename: str
    category: Optional[str] = None
    extension: str = ""
    file_size: int = 0
    created_at: Optional[float] = None


@dataclass
class DeleteResult:
    """Outcome of deleting one logical image; each half is independent."""

    id: str
    original_deleted: bool = False
    thumbnail_deleted: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "originalDeleted": self.original_deleted,
            "thumbnailDeleted": self.thumbnail_deleted,
        }
        if self.error is not None:
            data["error"] = self.error
        return data
