import logging
import time

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from lyricsplus.models.results import ResolveResult
from lyricsplus.models.song import SongIdentity
from lyricsplus.parsers.flat import v2_to_v1
from lyricsplus.parsers.ttml import serialize_ttml
from lyricsplus.services.lyrics_service import LyricsService, get_lyrics_service

logger = logging.getLogger(__name__)

router = APIRouter()

SUCCESS_CACHE_CONTROL = "public, max-age=3600, immutable"


class LyricsQuery(BaseModel):
    identity: SongIdentity
    sources: list[str] | None = None
    force_reload: bool = False


def lyrics_query(
    title: str | None = None,
    artist: str | None = None,
    album: str | None = None,
    duration: float | None = None,
    isrc: str | None = None,
    platform_id: str | None = Query(None, alias="platformId"),
    source: str | None = None,
    force_reload: bool = Query(False, alias="forceReload"),
) -> LyricsQuery:
    if not title or not artist:
        raise HTTPException(status_code=400, detail="Missing required parameters: title and artist")
    return LyricsQuery(
        identity=SongIdentity(
            title=title,
            artist=artist,
            album=album or None,
            duration_seconds=duration,
            isrc=isrc or None,
            platform_id=platform_id or None,
        ),
        sources=[s for s in source.split(",") if s.strip()] if source else None,
        force_reload=force_reload,
    )


def processing_time(started: float) -> dict[str, int]:
    return {
        "timeElapsed": round((time.perf_counter() - started) * 1000),
        "lastProcessed": int(time.time() * 1000),
    }


async def _resolve(query: LyricsQuery, service: LyricsService) -> ResolveResult:
    return await service.resolve(query.identity, sources=query.sources, force_reload=query.force_reload)


def _respond(result: ResolveResult, body: dict | None, started: float) -> JSONResponse:
    if not result.success:
        return JSONResponse(
            {"error": result.error, "processingTime": processing_time(started)},
            status_code=result.status,
            headers={"Cache-Control": "no-store"},
        )
    body["processingTime"] = processing_time(started)
    return JSONResponse(body, status_code=result.status, headers={"Cache-Control": SUCCESS_CACHE_CONTROL})


@router.get("/v2/lyrics/get")
async def get_lyrics_v2(
    query: LyricsQuery = Depends(lyrics_query),
    service: LyricsService = Depends(get_lyrics_service),
) -> JSONResponse:
    """Canonical (v2) lyrics for a song."""
    started = time.perf_counter()
    result = await _resolve(query, service)
    body = result.document.to_wire() if result.success else None
    return _respond(result, body, started)


@router.get("/v1/lyrics/get")
async def get_lyrics_v1(
    query: LyricsQuery = Depends(lyrics_query),
    service: LyricsService = Depends(get_lyrics_service),
) -> JSONResponse:
    """Lyrics in the flat v1 layout."""
    started = time.perf_counter()
    result = await _resolve(query, service)
    body = v2_to_v1(result.document).to_wire() if result.success else None
    return _respond(result, body, started)


@router.get("/v1/ttml/get")
async def get_lyrics_ttml(
    query: LyricsQuery = Depends(lyrics_query),
    service: LyricsService = Depends(get_lyrics_service),
) -> JSONResponse:
    """Lyrics as TTML; falls back to the v2 document if rendering fails."""
    started = time.perf_counter()
    result = await _resolve(query, service)
    body = None
    if result.success:
        try:
            body = {"ttml": serialize_ttml(result.document)}
        except Exception:
            logger.exception("Error converting lyrics to TTML")
            body = result.document.to_wire()
    return _respond(result, body, started)
