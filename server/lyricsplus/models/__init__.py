from lyricsplus.models.lyrics import (
    Agent,
    FlatDocument,
    FlatSegment,
    LineElement,
    LyricDocument,
    LyricLine,
    LyricsMetadata,
    Syllable,
)
from lyricsplus.models.results import Found, NotFound, ProviderError, ResolveResult
from lyricsplus.models.song import (
    BestMatch,
    CatalogEntry,
    ExactMetadata,
    MatchCandidate,
    ScoreResult,
    SongIdentity,
    StoredFile,
)

__all__ = [
    "Agent",
    "FlatDocument",
    "FlatSegment",
    "LineElement",
    "LyricDocument",
    "LyricLine",
    "LyricsMetadata",
    "Syllable",
    "Found",
    "NotFound",
    "ProviderError",
    "ResolveResult",
    "BestMatch",
    "CatalogEntry",
    "ExactMetadata",
    "MatchCandidate",
    "ScoreResult",
    "SongIdentity",
    "StoredFile",
]
