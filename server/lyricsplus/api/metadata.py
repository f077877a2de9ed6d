import logging

from fastapi import APIRouter, Depends, HTTPException

from lyricsplus.models.results import ProviderError
from lyricsplus.models.song import SongIdentity
from lyricsplus.services.lyrics_service import LyricsService, get_lyrics_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/v1/metadata/get")
async def get_metadata(
    title: str | None = None,
    artist: str | None = None,
    album: str | None = None,
    duration: float | None = None,
    service: LyricsService = Depends(get_lyrics_service),
) -> dict:
    """Apple Music catalog metadata for the best match of a song."""
    if not title or not artist:
        raise HTTPException(status_code=400, detail="Missing required parameters: title and artist")

    identity = SongIdentity(title=title, artist=artist, album=album or None, duration_seconds=duration)
    try:
        metadata = await service.lookup_metadata(identity)
    except ProviderError as e:
        logger.warning("Metadata lookup failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e)) from e

    if metadata is None:
        raise HTTPException(status_code=404, detail="Could not find metadata")
    return {"metadata": metadata}
