"""Tests for the Pillow thumbnail generator."""

import pytest
from PIL import Image

from conftest import make_image_bytes
from services.thumbnail_generator import ThumbnailGenerator, ThumbnailOptions, normalize_quality


@pytest.fixture()
def generator():
    return ThumbnailGenerator(ThumbnailOptions(max_width=200, max_height=200, quality=70))


def _write(tmp_path, name, data):
    path = tmp_path / name
    path.write_bytes(data)
    return path


class TestGenerate:
    def test_downscales_preserving_aspect_ratio(self, tmp_path, generator):
        src = _write(tmp_path, "wide.png", make_image_bytes("PNG", size=(800, 400)))
        dest = tmp_path / "thumb.png"

        assert generator.generate(str(src), str(dest)) is True
        with Image.open(dest) as thumb:
            assert thumb.size == (200, 100)
            assert thumb.format == "JPEG"

    def test_never_upscales(self, tmp_path, generator):
        src = _write(tmp_path, "small.jpg", make_image_bytes("JPEG", size=(50, 30)))
        dest = tmp_path / "thumb.jpg"

        assert generator.generate(str(src), str(dest))
        with Image.open(dest) as thumb:
            assert thumb.size == (50, 30)

    def test_flattens_alpha(self, tmp_path, generator):
        src = _write(tmp_path, "alpha.png", make_image_bytes("PNG", size=(300, 300), mode="RGBA"))
        dest = tmp_path / "thumb.png"

        assert generator.generate(str(src), str(dest))
        with Image.open(dest) as thumb:
            assert thumb.mode == "RGB"

    def test_gif_and_webp_sources(self, tmp_path, generator):
        for name, fmt in (("anim.gif", "GIF"), ("pic.webp", "WEBP")):
            src = _write(tmp_path, name, make_image_bytes(fmt, size=(400, 400)))
            assert generator.generate(str(src), str(tmp_path / f"thumb_{name}"))

    def test_per_call_options(self, tmp_path, generator):
        src = _write(tmp_path, "big.jpg", make_image_bytes("JPEG", size=(600, 600)))
        dest = tmp_path / "thumb.jpg"

        assert generator.generate(str(src), str(dest), ThumbnailOptions(max_width=64, max_height=32, quality=0.5))
        with Image.open(dest) as thumb:
            assert thumb.size == (32, 32)

    def test_unreadable_source_reports_failure(self, tmp_path, generator):
        src = _write(tmp_path, "broken.jpg", b"definitely not an image")
        dest = tmp_path / "thumb.jpg"

        assert generator.generate(str(src), str(dest)) is False
        assert not dest.exists()

    def test_missing_source_reports_failure(self, tmp_path, generator):
        assert generator.generate(str(tmp_path / "nope.jpg"), str(tmp_path / "thumb.jpg")) is False


@pytest.mark.parametrize(
    "value, expected",
    [(70, 70), (0.8, 80), (0.754, 75), (1, 100), (0, 0), (150, 100), (-5, 0)],
)
def test_normalize_quality(value, expected):
    assert normalize_quality(value) == expected
