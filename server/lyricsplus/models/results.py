from typing import Any

from pydantic import BaseModel, ConfigDict

from lyricsplus.models.lyrics import LyricDocument
from lyricsplus.models.song import ExactMetadata


class ProviderError(RuntimeError):
    """Transport or protocol failure while talking to a lyrics provider."""


class Found(BaseModel):
    """A provider produced lyrics.

    ``raw`` is the provider payload the document was converted from; it is what
    gets persisted when this outcome wins.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    source: str
    document: LyricDocument
    raw: Any = None
    exact_metadata: ExactMetadata | None = None

    @property
    def from_cache(self) -> bool:
        return self.document.is_cached


class NotFound(BaseModel):
    source: str
    reason: str


ProviderOutcome = Found | NotFound


class ResolveResult(BaseModel):
    success: bool
    status: int
    document: LyricDocument | None = None
    error: dict[str, Any] | None = None
    source: str | None = None
