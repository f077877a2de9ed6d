"""Shared fetch pipeline for lyrics providers.

Every provider runs the same steps: look for a stored payload under the
caller's identity, search the provider, pick a track with the similarity
engine, look again under the matched track's exact metadata, then fetch and
convert the provider payload. Subclasses fill in the provider-specific steps.
"""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, ClassVar, Literal

import httpx

from lyricsplus.config import settings
from lyricsplus.models.lyrics import LyricDocument
from lyricsplus.models.results import Found, NotFound, ProviderError, ProviderOutcome
from lyricsplus.models.song import BestMatch, CatalogEntry, ExactMetadata, MatchCandidate, SongIdentity, StoredFile
from lyricsplus.services.lyrics_cache import LyricsCache
from lyricsplus.services.similarity import find_best_match

logger = logging.getLogger(__name__)

ProviderFamily = Literal["granular", "markup"]


class LyricsProvider(ABC):
    name: ClassVar[str]
    # "granular" providers speak a word/line dialect, "markup" ones serve TTML
    # or stored canonical documents
    family: ClassVar[ProviderFamily]
    cache_folder: ClassVar[str]
    file_extension: ClassVar[str] = "json"
    mime_type: ClassVar[str] = "application/json"
    persists_payload: ClassVar[bool] = True
    checks_cache: ClassVar[bool] = True

    def __init__(self, client: Callable[[], httpx.AsyncClient], cache: LyricsCache) -> None:
        self._client = client
        self.cache = cache

    # ── Provider-specific steps ──────────────────────────────────

    def search_queries(self, identity: SongIdentity) -> list[str]:
        return [f"{identity.title} {identity.artist}", identity.title]

    @abstractmethod
    async def search(self, query: str) -> list[MatchCandidate]: ...

    @abstractmethod
    def exact_metadata(self, candidate: MatchCandidate) -> ExactMetadata: ...

    @abstractmethod
    async def fetch_raw(self, candidate: MatchCandidate) -> Any | None: ...

    @abstractmethod
    def convert(self, raw: Any) -> LyricDocument | None: ...

    def accepts(self, document: LyricDocument) -> bool:
        return True

    def dump_raw(self, raw: Any) -> str:
        return json.dumps(raw, ensure_ascii=False)

    def load_raw(self, content: bytes) -> Any:
        return json.loads(content)

    def catalog_entry(self, found: Found, identity: SongIdentity, stored: StoredFile) -> CatalogEntry | None:
        """Song catalog row to upsert after this provider's payload is stored."""
        return None

    # ── Pipeline ─────────────────────────────────────────────────

    async def fetch_lyrics(self, identity: SongIdentity, force_reload: bool = False) -> ProviderOutcome:
        try:
            return await self._fetch(identity, force_reload)
        except ProviderError as e:
            logger.warning("%s lyrics fetch failed: %s", self.name, e)
            return NotFound(source=self.name, reason=str(e))
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.warning("%s returned an unusable response: %r", self.name, e)
            return NotFound(source=self.name, reason=f"Unusable response: {e!r}")

    async def _fetch(self, identity: SongIdentity, force_reload: bool) -> ProviderOutcome:
        if self.checks_cache and not force_reload:
            cached = await self._from_cache(identity)
            if cached is not None:
                logger.debug("%s lyrics found in cache (initial check)", self.name)
                return cached

        if not identity.title or not identity.artist:
            return NotFound(source=self.name, reason="ID-only lookup found nothing in the cache")

        match = await self._match(identity)
        if match is None:
            return NotFound(source=self.name, reason="No confident track match")

        exact = self.exact_metadata(match.candidate)
        logger.info(
            "%s selected '%s' - '%s' (score %.3f, id %s)",
            self.name, exact.artist, exact.title, match.result.score, exact.platform_id,
        )

        if self.checks_cache and not force_reload:
            cached = await self._from_cache(exact.to_identity(), exact)
            if cached is not None:
                logger.debug("%s lyrics found in cache (post-search check)", self.name)
                return cached

        raw = await self.fetch_raw(match.candidate)
        if raw is None:
            return NotFound(source=self.name, reason="Matched track has no lyrics")

        document = self.convert(raw)
        if document is None or not document.lines:
            return NotFound(source=self.name, reason="Lyrics payload could not be converted")
        if not self.accepts(document):
            return NotFound(source=self.name, reason=f"{document.sync_type} sync is not accepted")

        return Found(
            source=self.name,
            document=_with_exact_metadata(document, exact).with_cache_state("None"),
            raw=raw,
            exact_metadata=exact,
        )

    async def _match(self, identity: SongIdentity) -> BestMatch | None:
        """Search with progressively looser queries until a candidate is confident.

        Candidates accumulate across queries so a later query can only add to
        the pool.
        """
        candidates: list[MatchCandidate] = []
        seen: set[str] = set()
        for query in self.search_queries(identity):
            query = query.strip()
            if not query or query in seen:
                continue
            seen.add(query)
            results = await self.search(query)
            if not results:
                continue
            candidates.extend(results)
            best = find_best_match(
                candidates,
                identity.title,
                identity.artist,
                identity.album,
                identity.duration_seconds,
            )
            if best is not None:
                return best
        return None

    async def _from_cache(self, identity: SongIdentity, exact: ExactMetadata | None = None) -> Found | None:
        loaded = await self.cache.load(identity, self.cache_folder, self.mime_type)
        if loaded is None:
            return None
        file, content = loaded
        try:
            raw = self.load_raw(content)
        except ValueError:
            logger.warning("Cached %s file %s is unreadable, refetching", self.name, file.name)
            return None

        document = self.convert(raw)
        if document is None or not document.lines or not self.accepts(document):
            return None
        if exact is not None:
            document = _with_exact_metadata(document, exact)
        return Found(
            source=self.name,
            document=document.with_cache_state("Storage"),
            raw=raw,
            exact_metadata=exact,
        )

    # ── HTTP ─────────────────────────────────────────────────────

    async def _get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        merged = {"User-Agent": settings.user_agent, **(headers or {})}
        try:
            resp = await self._client().get(url, params=params, headers=merged)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"{self.name} request failed with status {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"{self.name} request failed: {e!r}") from e
        except ValueError as e:
            raise ProviderError(f"{self.name} returned invalid JSON") from e


def _with_exact_metadata(document: LyricDocument, exact: ExactMetadata) -> LyricDocument:
    """Fill metadata fields the payload lacks from the matched track."""
    meta = document.metadata
    updates = {
        field: value
        for field, value in (
            ("title", exact.title),
            ("artist", exact.artist),
            ("album", exact.album),
            ("duration_ms", exact.duration_ms),
            ("isrc", exact.isrc),
            ("platform_id", exact.platform_id),
        )
        if value is not None and getattr(meta, field) is None
    }
    if not updates:
        return document
    return document.model_copy(update={"metadata": meta.model_copy(update=updates)})
