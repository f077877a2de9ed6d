"""Lyrics resolution across providers.

Every requested provider is queried concurrently; the successful documents
are ranked by sync quality and the winner's raw payload is stored in the
background so the next request for the same song is served from cache.
"""

import asyncio
import logging
from collections.abc import Sequence
from functools import lru_cache
from typing import Any

import httpx

from lyricsplus.config import settings
from lyricsplus.models.lyrics import LyricDocument
from lyricsplus.models.results import Found, NotFound, ProviderOutcome, ResolveResult
from lyricsplus.models.song import ExactMetadata, SongIdentity
from lyricsplus.providers.apple import AppleMusicProvider
from lyricsplus.providers.base import LyricsProvider, ProviderFamily
from lyricsplus.providers.lrclib import LrclibProvider
from lyricsplus.providers.musixmatch import MusixmatchProvider, MusixmatchWordProvider
from lyricsplus.providers.spotify import SpotifyProvider
from lyricsplus.providers.submitted import SubmittedLyricsProvider
from lyricsplus.services.lyrics_cache import LyricsCache
from lyricsplus.services.song_catalog import SongCatalog
from lyricsplus.services.storage import LocalFileStore
from lyricsplus.services.tokens import MusixmatchTokenSource, StaticTokenSource

logger = logging.getLogger(__name__)


def sync_priority(family: ProviderFamily, document: LyricDocument) -> int:
    """Rank a document by timing granularity (higher is better)."""
    if family == "granular":
        if document.sync_type == "Word":
            return 3
        if document.sync_type == "Line":
            return 2
        return 1
    return 3 if document.has_syllable_sync else 2


def build_providers(client: Any, cache: LyricsCache) -> list[LyricsProvider]:
    """The full provider set, wired with configured credentials."""
    musixmatch_tokens = MusixmatchTokenSource(client)
    return [
        AppleMusicProvider(
            client, cache, StaticTokenSource(settings.apple_developer_token, "Apple Music developer token"),
        ),
        SubmittedLyricsProvider(client, cache),
        MusixmatchWordProvider(client, cache, musixmatch_tokens),
        MusixmatchProvider(client, cache, musixmatch_tokens),
        SpotifyProvider(
            client, cache, StaticTokenSource(settings.spotify_access_token, "Spotify access token"),
        ),
        LrclibProvider(client, cache),
    ]


class LyricsService:
    """Resolves lyrics for a song identity across the configured providers."""

    def __init__(
        self,
        providers: Sequence[LyricsProvider] | None = None,
        cache: LyricsCache | None = None,
        catalog: SongCatalog | None = None,
    ) -> None:
        self._http: httpx.AsyncClient | None = None
        self.cache = cache if cache is not None else LyricsCache(LocalFileStore())
        self.catalog = catalog if catalog is not None else SongCatalog()
        if providers is None:
            providers = build_providers(self._client, self.cache)
        self.providers: dict[str, LyricsProvider] = {p.name: p for p in providers}
        self._pending: set[asyncio.Task[None]] = set()

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=settings.http_timeout_seconds, follow_redirects=True)
        return self._http

    def select_providers(self, sources: Sequence[str] | None = None) -> list[LyricsProvider]:
        """Providers in caller order, or the configured default order."""
        names = [s.strip().lower() for s in sources or [] if s.strip()] or settings.default_source_list
        selected = []
        for name in names:
            provider = self.providers.get(name)
            if provider is None:
                logger.warning("Ignoring unknown lyrics source '%s'", name)
                continue
            if provider not in selected:
                selected.append(provider)
        return selected

    async def _run(self, provider: LyricsProvider, identity: SongIdentity, force_reload: bool) -> ProviderOutcome:
        logger.debug("Queueing %s fetch", provider.name)
        try:
            return await provider.fetch_lyrics(identity, force_reload)
        except Exception as e:
            logger.exception("Error fetching from %s", provider.name)
            return NotFound(source=provider.name, reason=f"Unexpected error: {e!r}")

    async def resolve(
        self,
        identity: SongIdentity,
        sources: Sequence[str] | None = None,
        force_reload: bool = False,
    ) -> ResolveResult:
        """Query every selected provider and return the best-synced document.

        All providers run to completion, since a slower one may still carry
        finer timing. On equal priority the provider listed first wins.
        """
        providers = self.select_providers(sources)
        names = [p.name for p in providers]
        logger.info(
            "Resolving '%s' - '%s' via %s%s",
            identity.artist, identity.title, ", ".join(names),
            " (force reload)" if force_reload else "",
        )

        outcomes = await asyncio.gather(*(self._run(p, identity, force_reload) for p in providers))
        by_name = {p.name: p for p in providers}

        winner: Found | None = None
        winner_priority = 0
        for outcome in outcomes:
            if isinstance(outcome, NotFound):
                logger.debug("%s: %s", outcome.source, outcome.reason)
                continue
            if not outcome.document.lines:
                continue
            priority = sync_priority(by_name[outcome.source].family, outcome.document)
            if priority > winner_priority:
                winner, winner_priority = outcome, priority

        if winner is None:
            return ResolveResult(success=False, status=404, error=self._not_found(identity, names))

        provider = by_name[winner.source]
        logger.info(
            "Best lyrics from %s (%s sync, priority %d%s)",
            provider.name, winner.document.sync_type, winner_priority,
            ", cached" if winner.from_cache else "",
        )

        if not winner.from_cache and provider.persists_payload and winner.raw is not None:
            resolved = _resolved_identity(winner, identity)
            self._schedule(self._persist(provider, winner, resolved))

        return ResolveResult(success=True, status=200, document=winner.document, source=winner.source)

    @staticmethod
    def _not_found(identity: SongIdentity, names: list[str]) -> dict[str, Any]:
        return {
            "message": f"Lyrics not found in sources: {', '.join(names)}",
            "status": 404,
            "details": {
                "searchedSources": names,
                "songInfo": {
                    "title": identity.title,
                    "artist": identity.artist,
                    "album": identity.album or "",
                },
            },
        }

    # ── Background persistence ───────────────────────────────────

    def _schedule(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist(self, provider: LyricsProvider, found: Found, identity: SongIdentity) -> None:
        try:
            stored = await self.cache.save(
                identity,
                provider.cache_folder,
                provider.file_extension,
                provider.mime_type,
                provider.dump_raw(found.raw),
            )
            entry = provider.catalog_entry(found, identity, stored)
            if entry is not None:
                self.catalog.upsert(entry)
            logger.info("Saved best lyrics from %s as %s", provider.name, stored.id)
        except Exception:
            logger.exception("Failed to save lyrics from %s", provider.name)

    async def drain(self) -> None:
        """Wait for pending background writes."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    # ── Metadata ─────────────────────────────────────────────────

    async def lookup_metadata(self, identity: SongIdentity) -> dict[str, Any] | None:
        """Apple Music catalog attributes for the best match of ``identity``."""
        apple = self.providers.get(AppleMusicProvider.name)
        if not isinstance(apple, AppleMusicProvider):
            return None
        return await apple.lookup_metadata(identity)


def _resolved_identity(found: Found, query: SongIdentity) -> SongIdentity:
    """Identity to store the winner under: matched track, then document, then query."""
    exact = found.exact_metadata or ExactMetadata()
    meta = found.document.metadata
    duration_ms = exact.duration_ms or meta.duration_ms
    return SongIdentity(
        title=exact.title or meta.title or query.title,
        artist=exact.artist or meta.artist or query.artist,
        album=exact.album or meta.album or query.album,
        duration_seconds=duration_ms / 1000 if duration_ms else query.duration_seconds,
        isrc=exact.isrc or meta.isrc or query.isrc,
        platform_id=exact.platform_id or meta.platform_id or query.platform_id,
    )


@lru_cache
def get_lyrics_service() -> LyricsService:
    return LyricsService()
