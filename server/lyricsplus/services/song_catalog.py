"""Song catalog: an index of songs with cached Apple Music markup.

The whole list lives under one key of the key-value store and is only ever
changed through a single read-modify-write in ``upsert``.
"""

import logging

from pydantic import TypeAdapter, ValidationError

from lyricsplus.models.song import CatalogEntry
from lyricsplus.services.storage import InMemoryKeyValueStore, kv_store

logger = logging.getLogger(__name__)

SONG_LIST_KEY = "songList"

_entry_list = TypeAdapter(list[CatalogEntry])


def _same_song(existing: CatalogEntry, entry: CatalogEntry) -> bool:
    if existing.track_name.lower() != entry.track_name.lower():
        return False
    if existing.artist.lower() != entry.artist.lower():
        return False
    return not entry.album or (existing.album or "").lower() == entry.album.lower()


class SongCatalog:
    def __init__(self, store: InMemoryKeyValueStore | None = None) -> None:
        self._store = store if store is not None else kv_store

    def entries(self) -> list[CatalogEntry]:
        raw = self._store.get(SONG_LIST_KEY)
        if not raw:
            return []
        try:
            return _entry_list.validate_json(raw)
        except ValidationError:
            logger.warning("Song catalog is corrupt, starting from an empty list")
            return []

    def upsert(self, entry: CatalogEntry) -> None:
        """Replace the entry for the same title/artist/album, or append it."""
        entries = self.entries()
        for i, existing in enumerate(entries):
            if _same_song(existing, entry):
                entries[i] = entry
                break
        else:
            entries.append(entry)
        self._store.put(SONG_LIST_KEY, _entry_list.dump_json(entries, by_alias=True).decode())
        logger.info("Song catalog now holds %d entries", len(entries))

    def search(self, query: str, limit: int = 50) -> list[CatalogEntry]:
        """Entries whose artist, title and album text contains every query word."""
        words = query.lower().split()
        if not words:
            return []
        results = []
        for entry in self.entries():
            haystack = " ".join(filter(None, (entry.artist, entry.track_name, entry.album))).lower()
            if all(word in haystack for word in words):
                results.append(entry)
                if len(results) >= limit:
                    break
        return results
