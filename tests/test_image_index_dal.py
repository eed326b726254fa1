"""Tests for the SQLite-backed image index."""

import pytest

from dal.image_index_dal import ImageIndexDAL
from models.image_record import ImageRecord
from utils.database_init import AsyncDatabaseInitializer


def _record(image_id, name, category=None):
    return ImageRecord(
        id=image_id,
        display_name="sunset.jpg",
        original_filename=name,
        thumbnail_filename=name,
        category=category,
        created_at=1.0,
    )


@pytest.mark.asyncio
async def test_upsert_and_get(index):
    await index.upsert(_record("a", "a.jpg", "travel"))

    found = await index.get("a")
    assert found.original_filename == "a.jpg"
    assert found.category == "travel"
    assert await index.get("missing") is None


@pytest.mark.asyncio
async def test_replace_all_drops_previous_rows(index):
    await index.upsert(_record("old", "old.jpg"))

    count = await index.replace_all([_record("a", "a.jpg"), _record("b", "b.jpg")])

    assert count == 2
    assert await index.get("old") is None
    assert (await index.get("b")).original_filename == "b.jpg"


@pytest.mark.asyncio
async def test_rename_moves_row(index):
    await index.upsert(_record("legacy_1700000000000_abc", "legacy.jpg"))

    await index.rename("legacy_1700000000000_abc", _record("new-id", "renamed.jpg", "nature"))

    assert await index.get("legacy_1700000000000_abc") is None
    assert (await index.get("new-id")).category == "nature"


@pytest.mark.asyncio
async def test_delete_reports_change(index):
    await index.upsert(_record("a", "a.jpg"))
    assert await index.delete("a") is True
    assert await index.delete("a") is False


@pytest.mark.asyncio
async def test_database_is_recreated_on_startup(tmp_path):
    first = ImageIndexDAL(AsyncDatabaseInitializer(tmp_path))
    await first.upsert(_record("a", "a.jpg"))

    second = ImageIndexDAL(AsyncDatabaseInitializer(tmp_path))
    assert await second.get("a") is None


def test_database_dir_must_not_be_a_file(tmp_path):
    target = tmp_path / "file"
    target.write_text("x")
    with pytest.raises(RuntimeError):
        AsyncDatabaseInitializer(target)
