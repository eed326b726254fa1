"""Error taxonomy for the image service.

Every error carries the HTTP status and a short machine-readable code that
the exception handlers in `main.py` place in the JSON error envelope.
"""

from __future__ import annotations

from typing import Optional


class ImageServiceError(Exception):
    """Base class for errors raised by the image service."""

    status_code = 500
    code = "InternalError"

    def __init__(self, message: str, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(ImageServiceError):
    """Bad or missing client input."""

    status_code = 400
    code = "ValidationError"


class NoFileProvided(ValidationError):
    code = "NoFileProvided"


class UnsupportedType(ValidationError):
    code = "UnsupportedType"


class TooLarge(ValidationError):
    code = "TooLarge"


class NotFoundError(ImageServiceError):
    """An id resolved to nothing on disk."""

    status_code = 404
    code = "NotFound"


class StorageError(ImageServiceError):
    """Disk read/write/rename failure."""

    status_code = 500
    code = "StorageError"


class ProcessingError(ImageServiceError):
    """Thumbnail generation failure."""

    status_code = 500
    code = "ProcessingError"
