from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SongIdentity(BaseModel):
    """Free-text song identity supplied by a caller or confirmed by a provider."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    artist: str = ""
    album: str | None = None
    duration_seconds: float | None = None
    isrc: str | None = None
    platform_id: str | None = None

    @property
    def is_id_only(self) -> bool:
        return (not self.title or not self.artist) and bool(self.isrc or self.platform_id)


class ExactMetadata(BaseModel):
    """Track metadata as confirmed by a provider after matching."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    artist: str | None = None
    album: str | None = None
    duration_ms: int | None = None
    isrc: str | None = None
    platform_id: str | None = None

    def to_identity(self) -> SongIdentity:
        return SongIdentity(
            title=self.title or "",
            artist=self.artist or "",
            album=self.album,
            duration_seconds=self.duration_ms / 1000 if self.duration_ms else None,
            isrc=self.isrc,
            platform_id=self.platform_id,
        )


class MatchCandidate(BaseModel):
    """A search result in the shape the similarity engine scores.

    ``payload`` carries the provider's own object so the caller can resolve it
    once a match is chosen.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    title: str = ""
    artist: str = ""
    album: str | None = None
    duration_seconds: float | None = None
    isrc: str | None = None
    platform_id: str | None = None
    payload: Any = None


class ComponentScores(BaseModel):
    title: float = 0.0
    artist: float = 0.0
    album: float = 0.0
    duration: float = 0.0


class ScoreResult(BaseModel):
    score: float = Field(ge=0, le=1)
    reason: str
    components: ComponentScores = Field(default_factory=ComponentScores)


class BestMatch(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    candidate: MatchCandidate
    result: ScoreResult


class StoredFile(BaseModel):
    """Handle for a file held by the file store."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    folder: str
    mime_type: str


class CatalogEntry(BaseModel):
    """Denormalized song catalog row pointing at a cached markup file."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    artist: str
    track_name: str
    album: str | None = None
    ttml_file_id: str = Field(alias="ttmlFileId")
    source: str = "Apple"
