"""Validation helpers for uploaded images and category labels."""

import os
import re
from typing import Optional, Sequence

from models.errors import NoFileProvided, TooLarge, UnsupportedType, ValidationError
from services.filename_codec import MAX_CATEGORY_BYTES

_CATEGORY_PATTERN = re.compile(r"^[A-Za-z0-9\u4e00-\u9fa5\- ]+$")


def validate_image_upload(filename: Optional[str], data: Optional[bytes], allowed_types: Sequence[str], max_size: int) -> str:
    """Check an upload against the allowed type set and byte limit.

    Returns the lower-cased extension of `filename`.

    Raises:
        NoFileProvided: If there is no filename or no content.
        UnsupportedType: If the extension is not an allowed image type.
        TooLarge: If the content exceeds `max_size` bytes.
    """
    if not filename or data is None:
        raise NoFileProvided("No file was uploaded")
    ext = os.path.splitext(filename)[1].lower()
    if ext not in allowed_types:
        raise UnsupportedType(
            "Only image files can be uploaded",
            detail=f"Allowed types: {', '.join(allowed_types)}",
        )
    if not data:
        raise NoFileProvided("Uploaded file is empty")
    if len(data) > max_size:
        raise TooLarge(f"File exceeds the {max_size // (1024 * 1024)} MB limit")
    return ext


def clean_category(category: Optional[str]) -> Optional[str]:
    """Validate a client-supplied category; blank values mean "no category".

    Letters, digits, CJK ideographs, hyphens and spaces are accepted.
    """
    if category is None:
        return None
    category = category.strip()
    if not category:
        return None
    if len(category.encode("utf-8")) > MAX_CATEGORY_BYTES:
        raise ValidationError(f"Category must be at most {MAX_CATEGORY_BYTES} bytes")
    if not _CATEGORY_PATTERN.match(category):
        raise ValidationError(
            "Category may only contain letters, digits, CJK characters, hyphens and spaces"
        )
    return category
