"""Musixmatch desktop API: richsync (word) and subtitle (line) lyrics."""

import logging
from collections.abc import Callable
from typing import Any

import httpx

from lyricsplus.config import settings
from lyricsplus.models.lyrics import LyricDocument
from lyricsplus.models.results import ProviderError
from lyricsplus.models.song import ExactMetadata, MatchCandidate
from lyricsplus.parsers.musixmatch import convert_musixmatch
from lyricsplus.providers.base import LyricsProvider
from lyricsplus.services.lyrics_cache import LyricsCache
from lyricsplus.services.tokens import TokenSource

logger = logging.getLogger(__name__)


def _track_candidate(track: dict[str, Any]) -> MatchCandidate:
    length = track.get("track_length")
    track_id = track.get("track_id")
    return MatchCandidate(
        title=track.get("track_name") or "",
        artist=track.get("artist_name") or "",
        album=track.get("album_name"),
        duration_seconds=float(length) if length else None,
        isrc=track.get("track_isrc") or None,
        platform_id=str(track_id) if track_id is not None else None,
        payload=track,
    )


class MusixmatchProvider(LyricsProvider):
    """Any-sync Musixmatch lyrics: richsync read line by line, else the LRC subtitle."""

    name = "musixmatch"
    family = "granular"
    cache_folder = "musixmatch"
    require_word_sync = False

    def __init__(
        self,
        client: Callable[[], httpx.AsyncClient],
        cache: LyricsCache,
        tokens: TokenSource,
    ) -> None:
        super().__init__(client, cache)
        self._tokens = tokens

    async def _call(self, method: str, **params: Any) -> dict[str, Any]:
        token = await self._tokens.get_valid()
        data = await self._get_json(
            f"{settings.musixmatch_base_url}/{method}",
            params={**params, "app_id": settings.musixmatch_app_id, "usertoken": token},
            headers={"Origin": "https://musixmatch.com"},
        )
        message = data.get("message") or {}
        header = message.get("header") or {}
        if header.get("status_code") == 401:
            self._tokens.invalidate()
            logger.info("Musixmatch rejected the user token, dropping it")
        if header.get("status_code") != 200:
            raise ProviderError(
                f"Musixmatch API error on {method}: {header.get('hint') or header.get('status_code')}"
            )
        return message.get("body") or {}

    async def search(self, query: str) -> list[MatchCandidate]:
        body = await self._call("track.search", q=query, page_size=5, page=1, f_has_lyrics="true")
        return [
            _track_candidate(item["track"])
            for item in body.get("track_list") or []
            if isinstance(item, dict) and isinstance(item.get("track"), dict)
        ]

    def exact_metadata(self, candidate: MatchCandidate) -> ExactMetadata:
        return ExactMetadata(
            title=candidate.title,
            artist=candidate.artist,
            album=candidate.album,
            duration_ms=round(candidate.duration_seconds * 1000) if candidate.duration_seconds else None,
            isrc=candidate.isrc,
            platform_id=candidate.platform_id,
        )

    async def fetch_raw(self, candidate: MatchCandidate) -> dict[str, Any] | None:
        track_id = candidate.platform_id
        try:
            body = await self._call("track.richsync.get", track_id=track_id)
            if body.get("richsync"):
                return {"track": candidate.payload, "lyrics": {"message": {"body": body}}, "type": "richsync"}
        except ProviderError as e:
            logger.warning("Failed to fetch richsync lyrics for %s: %s", track_id, e)

        if self.require_word_sync:
            return None

        try:
            body = await self._call("track.subtitle.get", track_id=track_id, subtitle_format="lrc")
            if body.get("subtitle"):
                return {"track": candidate.payload, "lyrics": {"message": {"body": body}}, "type": "subtitle"}
        except ProviderError as e:
            logger.warning("Failed to fetch subtitle lyrics for %s: %s", track_id, e)
        return None

    def convert(self, raw: Any) -> LyricDocument | None:
        return convert_musixmatch(raw, require_word_sync=self.require_word_sync)

    def accepts(self, document: LyricDocument) -> bool:
        return not self.require_word_sync or document.has_syllable_sync


class MusixmatchWordProvider(MusixmatchProvider):
    """Word-synced Musixmatch lyrics only (richsync required)."""

    name = "musixmatch-word"
    require_word_sync = True
