import time

from fastapi import APIRouter, Depends, HTTPException

from lyricsplus.api.lyrics import processing_time
from lyricsplus.services.lyrics_service import LyricsService, get_lyrics_service

router = APIRouter()


@router.get("/v1/songlist/search")
async def search_song_list(
    q: str | None = None,
    service: LyricsService = Depends(get_lyrics_service),
) -> dict:
    """Search the catalog of songs with cached Apple Music lyrics."""
    if not q or not q.strip():
        raise HTTPException(status_code=400, detail="Missing required parameter: q (query)")
    started = time.perf_counter()
    results = service.catalog.search(q)
    return {
        "results": [entry.model_dump(by_alias=True) for entry in results],
        "processingTime": processing_time(started),
    }
