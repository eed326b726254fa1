"""Tests for id resolution and deletion of image pairs."""

import errno
import os

import pytest

from conftest import write_pair
from models.image_record import ImageRecord
from services.filename_codec import encode
from services.image_resolver import ImageResolver, correlate_thumbnail, find_matching_entry

TOKEN = "0f8fad5b-d9cb-469f-a165-70867728950e"
TS = 1700000000000


class TestFindMatchingEntry:
    def test_contains_match(self):
        entries = ["a_1.jpg", f"sunset_{TOKEN}_{TS}.jpg"]
        assert find_matching_entry(entries, TOKEN) == f"sunset_{TOKEN}_{TS}.jpg"

    def test_empty_identifier_matches_nothing(self):
        assert find_matching_entry(["anything.jpg"], "") is None

    def test_legacy_fragments(self):
        entries = ["other_1600000000000_zzz.jpg", "thumb_1700000000000_k3j9xq.jpg"]
        assert find_matching_entry(entries, "sunset_1700000000000_k3j9xq") == "thumb_1700000000000_k3j9xq.jpg"

    def test_no_match(self):
        assert find_matching_entry(["a.jpg"], "missing") is None

    def test_correlate_prefers_exact_name(self):
        name = f"sunset_{TOKEN}_{TS}.jpg"
        assert correlate_thumbnail(name, [f"x_{TOKEN}.jpg", name]) == name


class TestResolve:
    @pytest.mark.asyncio
    async def test_index_hit(self, store, index, resolver):
        name = encode("sunset.jpg", token=TOKEN, timestamp=TS)
        write_pair(store, name, name)
        await index.upsert(store.build_record(name, name))

        resolved = await resolver.resolve(TOKEN)
        assert resolved.original == name
        assert resolved.thumbnail == name

    @pytest.mark.asyncio
    async def test_unindexed_id_falls_back_to_scan(self, store, resolver):
        write_pair(store, "sunset_1700000000000_k3j9xq.jpg", "sunset_1700000000000_k3j9xq.jpg")

        resolved = await resolver.resolve("sunset_1700000000000_k3j9xq")
        assert resolved.original == "sunset_1700000000000_k3j9xq.jpg"
        assert resolved.thumbnail == "sunset_1700000000000_k3j9xq.jpg"

    @pytest.mark.asyncio
    async def test_stale_index_entry_falls_back_to_scan(self, store, index, resolver):
        await index.upsert(
            ImageRecord(id=TOKEN, display_name="gone.jpg", original_filename="gone.jpg", thumbnail_filename="gone.jpg")
        )
        name = encode("sunset.jpg", token=TOKEN, timestamp=TS)
        write_pair(store, name, name)

        resolved = await resolver.resolve(TOKEN)
        assert resolved.original == name


class TestDelete:
    @pytest.mark.asyncio
    async def test_deletes_both_halves(self, store, index, resolver):
        name = encode("sunset.jpg", token=TOKEN, timestamp=TS)
        write_pair(store, name, name)
        await index.upsert(store.build_record(name, name))

        result = await resolver.delete(TOKEN)

        assert result.original_deleted and result.thumbnail_deleted
        assert store.visible_entries(store.original_dir) == []
        assert store.visible_entries(store.thumbnail_dir) == []
        assert await index.get(TOKEN) is None

    @pytest.mark.asyncio
    async def test_unknown_id_is_not_an_error(self, resolver):
        result = await resolver.delete("does-not-exist")
        assert result.to_dict() == {"id": "does-not-exist", "originalDeleted": False, "thumbnailDeleted": False}

    @pytest.mark.asyncio
    async def test_halves_are_independent(self, store, resolver):
        name = encode("sunset.jpg", token=TOKEN, timestamp=TS)
        write_pair(store, name)

        result = await resolver.delete(TOKEN)
        assert result.original_deleted is True
        assert result.thumbnail_deleted is False

    @pytest.mark.asyncio
    async def test_batch_partial_success(self, store, resolver):
        name = encode("sunset.jpg", token=TOKEN, timestamp=TS)
        write_pair(store, name, name)

        results = await resolver.delete_many([TOKEN, "unknown"])

        assert [r.id for r in results] == [TOKEN, "unknown"]
        assert results[0].original_deleted and results[0].thumbnail_deleted
        assert not results[1].original_deleted and not results[1].thumbnail_deleted

    @pytest.mark.asyncio
    async def test_batch_records_per_id_errors(self, resolver, monkeypatch):
        real_delete = resolver.delete

        async def flaky(image_id):
            if image_id == "bad":
                raise RuntimeError("disk on fire")
            return await real_delete(image_id)

        monkeypatch.setattr(resolver, "delete", flaky)
        results = await resolver.delete_many(["bad", "fine"])

        assert results[0].to_dict()["error"] == "disk on fire"
        assert "error" not in results[1].to_dict()


class TestDeleteFile:
    def test_missing_file_returns_false(self, store):
        assert ImageResolver.delete_file(store.original_dir, "missing.jpg") is False

    def test_name_too_long_falls_back_to_timestamp_scan(self, store, monkeypatch):
        write_pair(store, f"sunset_{TOKEN}_{TS}.jpg")
        too_long = "x" * 300 + f"_{TS}_.jpg"
        real_remove = os.remove

        def remove(path):
            if str(path).endswith(too_long):
                raise OSError(errno.ENAMETOOLONG, "File name too long")
            real_remove(path)

        monkeypatch.setattr(os, "remove", remove)

        assert ImageResolver.delete_file(store.original_dir, too_long) is True
        assert store.visible_entries(store.original_dir) == []

    def test_name_too_long_without_match(self, store, monkeypatch):
        def remove(path):
            raise OSError(errno.ENAMETOOLONG, "File name too long")

        monkeypatch.setattr(os, "remove", remove)
        assert ImageResolver.delete_file(store.original_dir, "y" * 300 + ".jpg") is False


class TestDeleteWithIndexFailure:
    @pytest.mark.asyncio
    async def test_index_failure_keeps_file_results(self, store, index, resolver, monkeypatch):
        name = encode("sunset.jpg", token=TOKEN, timestamp=TS)
        write_pair(store, name, name)
        await index.upsert(store.build_record(name, name))

        async def locked(image_id):
            raise RuntimeError("database is locked")

        monkeypatch.setattr(index, "delete", locked)
        result = await resolver.delete(TOKEN)

        assert result.original_deleted and result.thumbnail_deleted
        assert result.error is None
        assert store.visible_entries(store.original_dir) == []

    @pytest.mark.asyncio
    async def test_batch_index_failure_reports_files_deleted(self, store, index, resolver, monkeypatch):
        name = encode("sunset.jpg", token=TOKEN, timestamp=TS)
        write_pair(store, name, name)

        async def locked(image_id):
            raise RuntimeError("database is locked")

        monkeypatch.setattr(index, "delete", locked)
        [result] = await resolver.delete_many([TOKEN])

        assert result.to_dict() == {"id": TOKEN, "originalDeleted": True, "thumbnailDeleted": True}
