import logging
from typing import List, Optional

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile
from pydantic import BaseModel

from controllers.image_controller import (
	batch_delete_images,
	delete_image,
	list_images,
	update_category,
	upload_image,
)
from models.errors import ImageServiceError, ValidationError

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api/images", tags=["images"])


class BatchDeletePayload(BaseModel):
	ids: Optional[List[str]] = None


class CategoryPayload(BaseModel):
	category: Optional[str] = None


def _internal_error(action: str, exc: Exception) -> ImageServiceError:
	LOGGER.exception("%s failed", action)
	return ImageServiceError(f"{action} failed", detail=str(exc))


@router.post("/upload")
async def upload_image_route(
	request: Request,
	file: Optional[UploadFile] = File(None),
	category: Optional[str] = Form(None),
):
	"""Upload one image (multipart field `file`) with an optional category."""
	try:
		return await upload_image(request, file, category)
	except (HTTPException, ImageServiceError):
		raise
	except Exception as exc:
		raise _internal_error("Upload", exc) from exc


@router.get("")
async def list_images_route(request: Request, search: Optional[str] = None):
	"""List stored images, optionally filtered by display name."""
	try:
		return await list_images(request, search)
	except (HTTPException, ImageServiceError):
		raise
	except Exception as exc:
		raise _internal_error("Listing images", exc) from exc


# Declared before "/{image_id}" so "batch-delete" is not taken as an id.
@router.delete("/batch-delete")
async def batch_delete_route(request: Request, payload: BatchDeletePayload):
	try:
		return await batch_delete_images(request, payload.ids)
	except (HTTPException, ImageServiceError):
		raise
	except Exception as exc:
		raise _internal_error("Batch delete", exc) from exc


@router.delete("/{image_id}")
async def delete_image_route(request: Request, image_id: str):
	try:
		return await delete_image(request, image_id)
	except (HTTPException, ImageServiceError):
		raise
	except Exception as exc:
		raise _internal_error("Delete", exc) from exc


@router.put("/{image_id}/category")
async def update_category_route(request: Request, image_id: str, payload: CategoryPayload):
	"""Change an image's category; an empty category clears it."""
	if payload.category is None:
		raise ValidationError("Category is required")
	try:
		return await update_category(request, image_id, payload.category)
	except (HTTPException, ImageServiceError):
		raise
	except Exception as exc:
		raise _internal_error("Category update", exc) from exc
