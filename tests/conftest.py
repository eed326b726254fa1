"""
Pytest fixtures shared across all test modules.
Every test gets its own upload directory pair and index under tmp_path.
"""

import io
import os
import tempfile

# Set env vars BEFORE any app module is imported; `main` builds a module-level app.
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="image-hosting-tests-"))

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from dal.image_index_dal import ImageIndexDAL  # noqa: E402
from main import create_app  # noqa: E402
from services.image_resolver import ImageResolver  # noqa: E402
from services.image_store import ImageStore  # noqa: E402
from utils.database_init import AsyncDatabaseInitializer  # noqa: E402
from utils.settings import Settings  # noqa: E402


def make_image_bytes(fmt="JPEG", size=(400, 300), mode="RGB", color=(200, 80, 40)):
    """Encode a solid-colour image in memory."""
    if mode == "RGBA" and len(color) == 3:
        color = (*color, 128)
    img = Image.new(mode, size, color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture()
def settings(tmp_path):
    return Settings(upload_dir=tmp_path / "upload", log_level="WARNING")


@pytest.fixture()
def store(settings):
    settings.ensure_directories()
    return ImageStore(settings.original_dir, settings.thumbnail_dir, settings.allowed_image_types)


@pytest.fixture()
def index(settings):
    return ImageIndexDAL(AsyncDatabaseInitializer(settings.database_dir))


@pytest.fixture()
def resolver(store, index):
    return ImageResolver(store, index)


@pytest.fixture()
def client(settings):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def write_pair(store, original, thumbnail=None, data=b"img"):
    """Create an original (and optionally a thumbnail) directly on disk."""
    store.original_path(original).write_bytes(data)
    if thumbnail:
        store.thumbnail_path(thumbnail).write_bytes(data)


def upload(client, filename="sunset.jpg", content=None, category=None, content_type="image/jpeg"):
    content = make_image_bytes() if content is None else content
    data = {"category": category} if category is not None else None
    return client.post(
        "/api/images/upload",
        files={"file": (filename, io.BytesIO(content), content_type)},
        data=data,
    )
