import logging
import traceback
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from dal.image_index_dal import ImageIndexDAL
from models.errors import ImageServiceError, ValidationError
from routes.image_route import router as image_router
from routes.index_route import router as index_router
from services.image_service import ImageService
from services.image_store import ImageStore
from services.thumbnail_generator import ThumbnailGenerator, ThumbnailOptions
from utils.database_init import AsyncDatabaseInitializer
from utils.settings import Settings

load_dotenv()  # Load environment variables from .env file if present

LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite image index (always new on startup, rebuilt from disk)
      - the image service shared by all routes
    and attach them to `app.state`.
    """
    settings: Settings = app.state.settings

    db_initializer = AsyncDatabaseInitializer(settings.database_dir)
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    store = ImageStore(settings.original_dir, settings.thumbnail_dir, settings.allowed_image_types)
    generator = ThumbnailGenerator(
        ThumbnailOptions(
            max_width=settings.thumbnail_width,
            max_height=settings.thumbnail_height,
            quality=settings.thumbnail_quality,
        )
    )
    service = ImageService(store, ImageIndexDAL(db_initializer), generator, settings.max_file_size)
    await service.rebuild_index()
    app.state.image_service = service

    LOGGER.info("Upload directory: %s", settings.upload_dir)
    LOGGER.info("File size limit: %dMB", settings.max_file_size_mb)
    yield


def _error_response(
    settings: Settings,
    status_code: int,
    error: str,
    message: Optional[str] = None,
    exc: Optional[BaseException] = None,
) -> JSONResponse:
    """Build the `{success: false, error, message?, stack?}` envelope."""
    content: Dict[str, Any] = {"success": False, "error": error}
    if message:
        content["message"] = message
    if exc is not None and not settings.is_production:
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Convert every error leaving a route into the JSON error envelope."""

    @app.exception_handler(ImageServiceError)
    async def image_service_error_handler(request: Request, exc: ImageServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            LOGGER.error("[%s] %s: %s", exc.code, exc.message, exc.detail)
        else:
            LOGGER.info("[%s] %s", exc.code, exc.message)
        message = exc.message if not exc.detail else f"{exc.message}: {exc.detail}"
        return _error_response(settings, exc.status_code, exc.code, message, exc if exc.status_code >= 500 else None)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
        return _error_response(settings, 400, ValidationError.code, errors or "Invalid request")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404 and exc.detail == "Not Found":
            return _error_response(settings, 404, "NotFound", f"Path not found: {request.url.path}")
        return _error_response(settings, exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        LOGGER.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(settings, 500, "InternalError", str(exc), exc)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    settings.ensure_directories()

    app = FastAPI(title="Image hosting", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings

    register_exception_handlers(app, settings)

    # Register application routers
    app.include_router(index_router)
    app.include_router(image_router)

    # Serve both image directories under the public prefix.
    app.mount(
        f"{settings.public_prefix}/{settings.original_dir.name}",
        StaticFiles(directory=settings.original_dir),
        name="originals",
    )
    app.mount(
        f"{settings.public_prefix}/{settings.thumbnail_dir.name}",
        StaticFiles(directory=settings.thumbnail_dir),
        name="thumbnails",
    )

    return app


app = create_app()
