"""Tests for the key-value store and the local file store."""

import threading

import aiofiles.os
import pytest

from lyricsplus.services.storage import InMemoryKeyValueStore, LocalFileStore, mime_type_for


class TestInMemoryKeyValueStore:
    def setup_method(self):
        self.store = InMemoryKeyValueStore()

    def test_put_and_get(self):
        self.store.put("k", "value")
        assert self.store.get("k") == "value"

    def test_get_missing_returns_none(self):
        assert self.store.get("missing") is None

    def test_put_overwrites(self):
        self.store.put("k", "1")
        self.store.put("k", "2")
        assert self.store.get("k") == "2"

    def test_delete(self):
        self.store.put("k", "v")
        self.store.delete("k")
        assert self.store.get("k") is None

    def test_delete_missing_is_noop(self):
        self.store.delete("missing")  # Should not raise

    def test_list_keys_and_clear(self):
        assert self.store.list_keys() == []
        self.store.put("a", "")
        self.store.put("b", "")
        assert set(self.store.list_keys()) == {"a", "b"}
        self.store.clear()
        assert self.store.list_keys() == []

    def test_thread_safety(self):
        """Verify concurrent access doesn't corrupt state."""
        errors: list[Exception] = []

        def writer(prefix: str):
            try:
                for i in range(100):
                    self.store.put(f"{prefix}_{i}", str(i))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(f"t{t}",)) for t in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(errors) == 0
        assert len(self.store.list_keys()) == 400


class TestMimeType:
    def test_known_suffixes(self):
        assert mime_type_for("a.json") == "application/json"
        assert mime_type_for("a.ttml") == "application/xml"
        assert mime_type_for("a.TTML") == "application/xml"

    def test_unknown_suffix(self):
        assert mime_type_for("a.bin") == "application/octet-stream"


class TestLocalFileStore:
    @pytest.fixture
    def store(self, tmp_path):
        return LocalFileStore(tmp_path)

    @pytest.mark.asyncio
    async def test_store_and_fetch(self, store: LocalFileStore, tmp_path):
        handle = await store.store("spotify", "Artist - Song.json", "application/json", '{"a": 1}')
        assert handle.id == "spotify/Artist - Song.json"
        assert handle.folder == "spotify"
        assert handle.mime_type == "application/json"
        assert (tmp_path / "spotify" / "Artist - Song.json").exists()
        assert await store.fetch_content(handle) == b'{"a": 1}'

    @pytest.mark.asyncio
    async def test_update_overwrites(self, store: LocalFileStore):
        handle = await store.store("apple", "x.ttml", "application/xml", b"<tt/>")
        updated = await store.update(handle, b"<tt></tt>")
        assert updated == handle
        assert await store.fetch_content(handle) == b"<tt></tt>"

    @pytest.mark.asyncio
    async def test_fetch_missing_returns_none(self, store: LocalFileStore):
        handle = await store.store("apple", "x.ttml", "application/xml", b"<tt/>")
        (store._root / handle.id).unlink()
        assert await store.fetch_content(handle) is None

    @pytest.mark.asyncio
    async def test_search_requires_every_keyword(self, store: LocalFileStore):
        await store.store("spotify", "The Weeknd - Blinding Lights.json", "application/json", "{}")
        await store.store("spotify", "The Weeknd - Save Your Tears.json", "application/json", "{}")

        results = await store.search("spotify", ["weeknd", "Blinding"])
        assert [f.name for f in results] == ["The Weeknd - Blinding Lights.json"]

    @pytest.mark.asyncio
    async def test_search_filters_mime_type(self, store: LocalFileStore):
        await store.store("mixed", "Song.json", "application/json", "{}")
        await store.store("mixed", "Song.ttml", "application/xml", "<tt/>")

        results = await store.search("mixed", ["Song"], "application/xml")
        assert [f.name for f in results] == ["Song.ttml"]

    @pytest.mark.asyncio
    async def test_search_empty_folder(self, store: LocalFileStore):
        assert await store.search("nothing", ["song"]) == []

    @pytest.mark.asyncio
    async def test_store_rejects_paths(self, store: LocalFileStore):
        with pytest.raises(ValueError):
            await store.store("apple", "../escape.ttml", "application/xml", b"")

    @pytest.mark.asyncio
    async def test_search_lists_folder_through_aiofiles(self, store: LocalFileStore, monkeypatch):
        await store.store("lrclib", "Artist - Song.json", "application/json", "{}")
        (store._root / "lrclib" / "Song folder").mkdir()

        listed = []
        real_listdir = aiofiles.os.listdir

        async def listdir(path):
            listed.append(path)
            return await real_listdir(path)

        monkeypatch.setattr(aiofiles.os, "listdir", listdir)
        results = await store.search("lrclib", ["song"])

        assert listed == [store._root / "lrclib"]
        # Sub-directories are not files
        assert [f.name for f in results] == ["Artist - Song.json"]
