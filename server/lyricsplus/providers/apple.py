"""Apple Music catalog search and syllable-level TTML lyrics."""

import logging
from collections.abc import Callable
from typing import Any

import httpx

from lyricsplus.config import settings
from lyricsplus.models.lyrics import LyricDocument
from lyricsplus.models.results import Found
from lyricsplus.models.song import BestMatch, CatalogEntry, ExactMetadata, MatchCandidate, SongIdentity, StoredFile
from lyricsplus.parsers.ttml import parse_ttml
from lyricsplus.providers.base import LyricsProvider
from lyricsplus.services.lyrics_cache import LyricsCache
from lyricsplus.services.tokens import TokenSource

logger = logging.getLogger(__name__)

# Catalog attributes that say nothing about the song itself
_HIDDEN_ATTRIBUTES = frozenset({
    "isVocalAttenuationAllowed",
    "isMasteredForItunes",
    "url",
    "playParams",
    "discNumber",
    "isAppleDigitalMaster",
    "hasLyrics",
    "audioTraits",
    "hasTimeSyncedLyrics",
})


def _song_candidate(song: dict[str, Any]) -> MatchCandidate:
    attrs = song.get("attributes") or {}
    duration = attrs.get("durationInMillis")
    return MatchCandidate(
        title=attrs.get("name") or "",
        artist=attrs.get("artistName") or "",
        album=attrs.get("albumName"),
        duration_seconds=duration / 1000 if duration else None,
        isrc=attrs.get("isrc"),
        platform_id=str(song["id"]) if song.get("id") is not None else None,
        payload=song,
    )


class AppleMusicProvider(LyricsProvider):
    name = "apple"
    family = "markup"
    cache_folder = "apple"
    file_extension = "ttml"
    mime_type = "application/xml"

    def __init__(
        self,
        client: Callable[[], httpx.AsyncClient],
        cache: LyricsCache,
        developer_token: TokenSource,
    ) -> None:
        super().__init__(client, cache)
        self._developer_token = developer_token

    async def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {await self._developer_token.get_valid()}",
            "Origin": "https://music.apple.com",
        }
        if settings.apple_media_user_token:
            headers["Media-User-Token"] = settings.apple_media_user_token
        return headers

    def _catalog_url(self, path: str) -> str:
        return f"{settings.apple_api_url}/catalog/{settings.apple_storefront}/{path}"

    def search_queries(self, identity: SongIdentity) -> list[str]:
        return [
            " ".join(filter(None, (identity.title, identity.artist, identity.album))),
            " ".join(filter(None, (identity.title, identity.artist))),
            f"{identity.artist} {identity.title}",
            identity.title,
        ]

    async def search_songs(self, term: str) -> list[dict[str, Any]]:
        data = await self._get_json(
            self._catalog_url("search"),
            params={"term": term, "types": "songs", "limit": 25},
            headers=await self._headers(),
        )
        return ((data.get("results") or {}).get("songs") or {}).get("data") or []

    async def search(self, query: str) -> list[MatchCandidate]:
        return [_song_candidate(song) for song in await self.search_songs(query)]

    def exact_metadata(self, candidate: MatchCandidate) -> ExactMetadata:
        return ExactMetadata(
            title=candidate.title,
            artist=candidate.artist,
            album=candidate.album,
            duration_ms=round(candidate.duration_seconds * 1000) if candidate.duration_seconds else None,
            isrc=candidate.isrc,
            platform_id=candidate.platform_id,
        )

    async def fetch_raw(self, candidate: MatchCandidate) -> str | None:
        data = await self._get_json(
            self._catalog_url(f"songs/{candidate.platform_id}/syllable-lyrics"),
            headers=await self._headers(),
        )
        try:
            return data["data"][0]["attributes"]["ttml"]
        except (KeyError, IndexError, TypeError):
            logger.warning("Apple Music has no syllable lyrics for %s", candidate.platform_id)
            return None

    def convert(self, raw: Any) -> LyricDocument | None:
        return parse_ttml(raw)

    def dump_raw(self, raw: Any) -> str:
        return raw

    def load_raw(self, content: bytes) -> str:
        return content.decode("utf-8")

    def catalog_entry(self, found: Found, identity: SongIdentity, stored: StoredFile) -> CatalogEntry:
        return CatalogEntry(
            id=identity.platform_id,
            artist=identity.artist,
            track_name=identity.title,
            album=identity.album,
            ttml_file_id=stored.id,
        )

    async def lookup_metadata(self, identity: SongIdentity) -> dict[str, Any] | None:
        """Catalog attributes of the best Apple Music match for ``identity``."""
        match: BestMatch | None = await self._match(identity)
        if match is None:
            return None
        attrs = match.candidate.payload.get("attributes") or {}
        return {k: v for k, v in attrs.items() if k not in _HIDDEN_ATTRIBUTES}
