"""User-submitted lyrics already held in the file store (v1 or v2 JSON)."""

import logging
from typing import Any

from lyricsplus.models.lyrics import LyricDocument
from lyricsplus.models.song import ExactMetadata, MatchCandidate
from lyricsplus.parsers.flat import parse_lyrics_json
from lyricsplus.providers.base import LyricsProvider
from lyricsplus.services.fingerprint import cleanup, parse_file_name

logger = logging.getLogger(__name__)


class SubmittedLyricsProvider(LyricsProvider):
    """Searches the store instead of a remote API; nothing is ever written back."""

    name = "lyricsplus"
    family = "markup"
    cache_folder = "lyricsplus"
    persists_payload = False
    checks_cache = False

    async def search(self, query: str) -> list[MatchCandidate]:
        keywords = [w for w in cleanup(query).split(" ") if len(w) > 3]
        if not keywords:
            return []
        files = await self.cache.files.search(self.cache_folder, keywords, self.mime_type)
        candidates = []
        for file in files:
            parsed = parse_file_name(file.name)
            candidates.append(MatchCandidate(
                title=parsed.title,
                artist=parsed.artist,
                album=parsed.album,
                duration_seconds=parsed.duration_seconds,
                isrc=parsed.isrc,
                platform_id=parsed.platform_id,
                payload=file,
            ))
        return candidates

    def exact_metadata(self, candidate: MatchCandidate) -> ExactMetadata:
        return ExactMetadata(
            title=candidate.title,
            artist=candidate.artist,
            album=candidate.album,
            duration_ms=round(candidate.duration_seconds * 1000) if candidate.duration_seconds else None,
            isrc=candidate.isrc,
            platform_id=candidate.platform_id,
        )

    async def fetch_raw(self, candidate: MatchCandidate) -> Any | None:
        content = await self.cache.files.fetch_content(candidate.payload)
        if content is None:
            return None
        return self.load_raw(content)

    def convert(self, raw: Any) -> LyricDocument | None:
        return parse_lyrics_json(raw)
