"""Spotify Web API search plus the color-lyrics endpoint."""

import logging
from collections.abc import Callable
from typing import Any

import httpx

from lyricsplus.config import settings
from lyricsplus.models.lyrics import LyricDocument
from lyricsplus.models.results import ProviderError
from lyricsplus.models.song import ExactMetadata, MatchCandidate, SongIdentity
from lyricsplus.parsers.spotify import convert_spotify
from lyricsplus.providers.base import LyricsProvider
from lyricsplus.services.lyrics_cache import LyricsCache
from lyricsplus.services.tokens import TokenSource

logger = logging.getLogger(__name__)


def _track_candidate(track: dict[str, Any]) -> MatchCandidate:
    duration = track.get("duration_ms")
    return MatchCandidate(
        title=track.get("name") or "",
        artist=", ".join(a.get("name", "") for a in track.get("artists") or []),
        album=(track.get("album") or {}).get("name"),
        duration_seconds=duration / 1000 if duration else None,
        isrc=(track.get("external_ids") or {}).get("isrc"),
        platform_id=track.get("id"),
        payload=track,
    )


class SpotifyProvider(LyricsProvider):
    name = "spotify"
    family = "granular"
    cache_folder = "spotify"

    def __init__(
        self,
        client: Callable[[], httpx.AsyncClient],
        cache: LyricsCache,
        tokens: TokenSource,
    ) -> None:
        super().__init__(client, cache)
        self._tokens = tokens

    async def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {await self._tokens.get_valid()}",
            "App-Platform": "WebPlayer",
        }

    def search_queries(self, identity: SongIdentity) -> list[str]:
        return [f"{identity.title} artist:{identity.artist}", identity.title]

    async def search(self, query: str) -> list[MatchCandidate]:
        data = await self._get_json(
            f"{settings.spotify_api_url}/search",
            params={"q": query, "type": "track", "limit": 10},
            headers=await self._headers(),
        )
        items = (data.get("tracks") or {}).get("items") or []
        return [_track_candidate(track) for track in items if isinstance(track, dict)]

    def exact_metadata(self, candidate: MatchCandidate) -> ExactMetadata:
        track = candidate.payload
        return ExactMetadata(
            title=candidate.title,
            artist=candidate.artist,
            album=candidate.album,
            duration_ms=track.get("duration_ms"),
            isrc=candidate.isrc,
            platform_id=candidate.platform_id,
        )

    async def fetch_songwriters(self, track_id: str) -> list[str]:
        try:
            data = await self._get_json(f"{settings.spotify_credits_url}{track_id}", headers=await self._headers())
        except ProviderError as e:
            logger.warning("Failed to fetch Spotify songwriters for %s: %s", track_id, e)
            return []
        for role in data.get("roleCredits") or []:
            if (role.get("roleTitle") or "").lower() == "writers":
                return [artist.get("name") for artist in role.get("artists") or [] if artist.get("name")]
        return []

    async def fetch_raw(self, candidate: MatchCandidate) -> dict[str, Any] | None:
        track_id = candidate.platform_id
        payload = await self._get_json(
            f"{settings.spotify_lyrics_url}{track_id}",
            params={"format": "json", "vocalRemoval": "false", "market": "from_token"},
            headers=await self._headers(),
        )
        if not isinstance(payload, dict) or not isinstance(payload.get("lyrics"), dict):
            logger.warning("No lyrics found for Spotify track %s", track_id)
            return None
        payload["lyrics"]["songWriters"] = await self.fetch_songwriters(track_id)
        return payload

    def convert(self, raw: Any) -> LyricDocument | None:
        return convert_spotify(raw)
