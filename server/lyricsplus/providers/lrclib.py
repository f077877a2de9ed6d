"""LRCLIB: community line-synced lyrics."""

import logging
from typing import Any

from lyricsplus.config import settings
from lyricsplus.models.lyrics import LyricDocument
from lyricsplus.models.song import ExactMetadata, MatchCandidate
from lyricsplus.parsers.lrc import convert_lrclib
from lyricsplus.parsers.timing import seconds_to_ms
from lyricsplus.providers.base import LyricsProvider

logger = logging.getLogger(__name__)


def _record_candidate(record: dict[str, Any]) -> MatchCandidate:
    duration = record.get("duration")
    record_id = record.get("id")
    return MatchCandidate(
        title=record.get("trackName") or "",
        artist=record.get("artistName") or "",
        album=record.get("albumName"),
        duration_seconds=float(duration) if duration else None,
        platform_id=str(record_id) if record_id is not None else None,
        payload=record,
    )


class LrclibProvider(LyricsProvider):
    name = "lrclib"
    family = "granular"
    cache_folder = "lrclib"

    async def search(self, query: str) -> list[MatchCandidate]:
        records = await self._get_json(f"{settings.lrclib_base_url}/search", params={"q": query})
        if not isinstance(records, list):
            return []
        # Plain-text-only records can never produce synced lyrics
        return [
            _record_candidate(record)
            for record in records
            if isinstance(record, dict) and not record.get("instrumental")
        ]

    def exact_metadata(self, candidate: MatchCandidate) -> ExactMetadata:
        duration = candidate.payload.get("duration")
        return ExactMetadata(
            title=candidate.title,
            artist=candidate.artist,
            album=candidate.album,
            duration_ms=seconds_to_ms(duration) if duration else None,
            platform_id=candidate.platform_id,
        )

    async def fetch_raw(self, candidate: MatchCandidate) -> dict[str, Any] | None:
        record = candidate.payload
        if not record.get("syncedLyrics"):
            record = await self._get_json(f"{settings.lrclib_base_url}/get/{candidate.platform_id}")
        if not isinstance(record, dict) or not record.get("syncedLyrics"):
            logger.debug("LRCLIB record %s has no synced lyrics", candidate.platform_id)
            return None
        return record

    def convert(self, raw: Any) -> LyricDocument | None:
        return convert_lrclib(raw)
