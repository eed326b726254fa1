from datetime import datetime, timezone

from fastapi import APIRouter

API_VERSION = "1.0.0"

router = APIRouter(prefix="/api")


@router.get("")
async def api_root():
	return {"success": True, "message": "Server is running", "version": API_VERSION}


@router.get("/health")
async def health():
	"""Liveness probe."""
	return {"success": True, "status": "UP", "timestamp": datetime.now(timezone.utc).isoformat()}
