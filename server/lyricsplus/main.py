import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lyricsplus.config import settings
from lyricsplus.api import catalog, lyrics, metadata
from lyricsplus.services.lyrics_service import get_lyrics_service


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings.cache_dir.mkdir(parents=True, exist_ok=True)
    yield
    # Flush pending cache writes and close the shared HTTP client
    await get_lyrics_service().aclose()


app = FastAPI(
    title="LyricsPlus API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(lyrics.router, tags=["lyrics"])
app.include_router(catalog.router, tags=["songlist"])
app.include_router(metadata.router, tags=["metadata"])


@app.get("/api/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}
