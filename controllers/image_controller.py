from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request, UploadFile

from models.errors import ValidationError
from models.image_record import ImageRecord
from services.image_service import ImageService
from utils.settings import Settings


def _get_image_service(request: Request) -> ImageService:
    """Retrieve the shared image service from the app state."""
    service = getattr(request.app.state, "image_service", None)
    if service is None:
        raise HTTPException(status_code=500, detail="Image service not initialized.")
    return service


def serialize_record(record: ImageRecord, settings: Settings) -> Dict[str, Any]:
    """Convert an `ImageRecord` into the JSON shape returned to clients."""
    created_at = None
    if record.created_at is not None:
        created_at = datetime.fromtimestamp(record.created_at, tz=timezone.utc).isoformat()
    return {
        "id": record.id,
        "displayName": record.display_name,
        "category": record.category,
        "extension": record.extension,
        "originalUrl": settings.original_url(record.original_filename),
        "thumbnailUrl": settings.thumbnail_url(record.thumbnail_filename) if record.thumbnail_filename else None,
        "fileSize": record.file_size,
        "createdAt": created_at,
    }


async def upload_image(request: Request, file: Optional[UploadFile], category: Optional[str] = None) -> Dict[str, Any]:
    """Store an uploaded image with its thumbnail.

    Args:
        request: FastAPI Request object (used to access app.state).
        file: Multipart file part; None when the client sent no file.
        category: Optional category label.

    Returns:
        Envelope whose `data` holds id, displayName, originalUrl, thumbnailUrl and fileSize.
    """
    service = _get_image_service(request)
    data = await file.read() if file is not None else None
    filename = file.filename if file is not None else None

    record = await service.upload(filename, data, category)
    return {"success": True, "data": serialize_record(record, request.app.state.settings)}


async def list_images(request: Request, search: Optional[str] = None) -> Dict[str, Any]:
    service = _get_image_service(request)
    settings = request.app.state.settings
    records = await service.list_images(search)
    return {"success": True, "data": [serialize_record(r, settings) for r in records]}


async def delete_image(request: Request, image_id: str) -> Dict[str, Any]:
    """Delete one image pair. Unknown ids report both halves as not deleted."""
    service = _get_image_service(request)
    result = await service.delete(image_id)
    return {
        "success": True,
        "message": "Image deleted" if result.original_deleted or result.thumbnail_deleted else "Nothing to delete",
        "data": {
            "originalDeleted": result.original_deleted,
            "thumbnailDeleted": result.thumbnail_deleted,
        },
    }


async def batch_delete_images(request: Request, ids: Optional[List[str]]) -> Dict[str, Any]:
    """Delete several images independently and report a result per id.

    Raises:
        ValidationError: If `ids` is missing or empty.
    """
    if not ids:
        raise ValidationError("Please provide a non-empty list of image ids")
    service = _get_image_service(request)
    results = await service.delete_many(ids)
    deleted = sum(1 for r in results if r.original_deleted or r.thumbnail_deleted)
    return {
        "success": True,
        "message": f"Deleted {deleted} of {len(results)} images",
        "data": [r.to_dict() for r in results],
    }


async def update_category(request: Request, image_id: str, category: Optional[str]) -> Dict[str, Any]:
    """Re-encode an image's category into both of its filenames."""
    service = _get_image_service(request)
    record = await service.update_category(image_id, category)
    data = serialize_record(record, request.app.state.settings)
    return {
        "success": True,
        "data": {
            "id": data["id"],
            "category": data["category"],
            "originalUrl": data["originalUrl"],
            "thumbnailUrl": data["thumbnailUrl"],
        },
    }
