"""Environment-driven configuration for the image service."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

BASE_DIR = Path(__file__).resolve().parent.parent

ALLOWED_IMAGE_TYPES: Tuple[str, ...] = (".jpg", ".jpeg", ".png", ".gif", ".webp")


def _env_number(name: str, default, cast=int):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name}={raw!r} is not a valid number") from exc


@dataclass
class Settings:
    """Runtime configuration.

    Directory attributes default relative to `upload_dir` when not given.
    `thumbnail_quality` accepts either the 0-100 scale or a fraction in (0, 1].
    """

    upload_dir: Path = BASE_DIR / "upload"
    original_dir: Optional[Path] = None
    thumbnail_dir: Optional[Path] = None
    database_dir: Optional[Path] = None
    max_file_size_mb: int = 20
    thumbnail_width: int = 200
    thumbnail_height: int = 200
    thumbnail_quality: float = 70
    public_prefix: str = "/upload"
    app_env: str = "development"
    log_level: str = "INFO"
    allowed_image_types: Tuple[str, ...] = field(default=ALLOWED_IMAGE_TYPES)

    def __post_init__(self) -> None:
        self.upload_dir = Path(self.upload_dir).expanduser()
        self.original_dir = Path(self.original_dir) if self.original_dir else self.upload_dir / "origin"
        self.thumbnail_dir = Path(self.thumbnail_dir) if self.thumbnail_dir else self.upload_dir / "thumbnails"
        self.database_dir = Path(self.database_dir) if self.database_dir else self.upload_dir / ".index"
        self.public_prefix = "/" + self.public_prefix.strip("/")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables (call after `load_dotenv()`)."""
        upload_dir = os.getenv("UPLOAD_DIR") or str(BASE_DIR / "upload")
        return cls(
            upload_dir=Path(upload_dir),
            original_dir=os.getenv("ORIGINAL_DIR") or None,
            thumbnail_dir=os.getenv("THUMBNAIL_DIR") or None,
            database_dir=os.getenv("DATABASE_DIR") or None,
            max_file_size_mb=_env_number("MAX_FILE_SIZE_MB", 20),
            thumbnail_width=_env_number("THUMBNAIL_WIDTH", 200),
            thumbnail_height=_env_number("THUMBNAIL_HEIGHT", 200),
            thumbnail_quality=_env_number("THUMBNAIL_QUALITY", 70, float),
            public_prefix=os.getenv("PUBLIC_PREFIX", "/upload"),
            app_env=os.getenv("APP_ENV", "development"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def max_file_size(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    def ensure_directories(self) -> None:
        """Create the upload, originals, thumbnails and index directories."""
        for directory in (self.upload_dir, self.original_dir, self.thumbnail_dir, self.database_dir):
            if directory.exists() and not directory.is_dir():
                raise RuntimeError(f"{directory} exists but is not a directory")
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise RuntimeError(f"Failed to create or access directory at {directory}") from exc

    def original_url(self, filename: str) -> str:
        return f"{self.public_prefix}/{self.original_dir.name}/{filename}"

    def thumbnail_url(self, filename: str) -> str:
        return f"{self.public_prefix}/{self.thumbnail_dir.name}/{filename}"
