"""Thumbnail generator service.

Provides a small OOP wrapper around Pillow to create bounded-size previews
of stored originals. The resulting thumbnail fits within the configured
width/height, keeps the aspect ratio, is never upscaled, and is re-encoded
as JPEG at the configured quality.

Public class: `ThumbnailGenerator`

Example:
    tg = ThumbnailGenerator(ThumbnailOptions(max_width=200, max_height=200, quality=70))
    ok = tg.generate("upload/origin/a.png", "upload/thumbnails/a.png")
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image, ImageOps

LOGGER = logging.getLogger(__name__)


def normalize_quality(value: float) -> int:
    """Convert a quality value to Pillow's 0-100 scale.

    Values in (0, 1] are treated as fractions and scaled by 100; anything
    else is rounded and clamped to 0-100.
    """
    if 0 < value <= 1:
        value = value * 100
    return max(0, min(100, int(round(value))))


@dataclass
class ThumbnailOptions:
    """Bounds and encoding quality for a thumbnail."""

    max_width: int = 200
    max_height: int = 200
    quality: float = 70

    @property
    def max_size(self) -> Tuple[int, int]:
        return self.max_width, self.max_height


class ThumbnailGenerator:
    """Generate JPEG thumbnails from image files on disk.

    Args:
        options: Default bounds and quality used when `generate` is called
            without explicit options.
        background: Optional background color used when flattening images with
            alpha to RGB. If None, images with alpha are flattened against white.
    """

    def __init__(self, options: Optional[ThumbnailOptions] = None, background: Tuple[int, int, int] | None = None):
        self.options = options or ThumbnailOptions()
        self.background = background or (255, 255, 255)

    def generate(self, original_path: str, dest_path: str, options: Optional[ThumbnailOptions] = None) -> bool:
        """Write a thumbnail of `original_path` to `dest_path`.

        Args:
            original_path: Path to the stored original image.
            dest_path: Path the thumbnail is written to (overwritten if present).
            options: Optional per-call bounds/quality overriding the defaults.

        Returns:
            True on success. Unreadable sources, unsupported formats and write
            errors are logged and reported as False; a partial output is removed.
        """
        opts = options or self.options
        try:
            with Image.open(original_path) as src:
                # Respect camera orientation before measuring the bounds.
                src = ImageOps.exif_transpose(src)
                img = src.convert("RGBA")

            img.thumbnail(opts.max_size, Image.LANCZOS)

            # Flatten alpha against the background color
            background = Image.new("RGB", img.size, self.background)
            background.paste(img, mask=img.split()[3])
            background.save(dest_path, format="JPEG", quality=normalize_quality(opts.quality), optimize=True)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.error("Thumbnail generation failed for %s: %s", original_path, exc)
            try:
                os.remove(dest_path)
            except OSError:
                pass
            return False

        LOGGER.info("Generated thumbnail %s", dest_path)
        return True
