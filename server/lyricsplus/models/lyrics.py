"""Canonical lyric document (v2) and its flat v1 counterpart.

Field names follow Python conventions; the wire names used by clients
(``time``, ``syllabus``, ``songPart``...) are kept as aliases, so documents
serialize with ``model_dump(by_alias=True)``.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

SyncType = Literal["Line", "Word"]
CacheState = Literal["None", "Storage", "Cache"]
AgentType = Literal["person", "group"]

_WIRE_CONFIG = ConfigDict(populate_by_name=True, frozen=True)


class Syllable(BaseModel):
    model_config = _WIRE_CONFIG

    start_ms: int = Field(alias="time", ge=0)
    duration_ms: int = Field(alias="duration", ge=0)
    text: str
    is_background_vocal: bool = Field(default=False, alias="isBackground")

    @property
    def end_ms(self) -> int:
        return self.start_ms + self.duration_ms


class LineElement(BaseModel):
    model_config = _WIRE_CONFIG

    key: str = ""
    song_part: str = Field(default="", alias="songPart")
    singer_alias: str = Field(default="", alias="singer")


class LineTranslation(BaseModel):
    model_config = _WIRE_CONFIG

    lang: str | None = None
    text: str


class LineTransliteration(BaseModel):
    model_config = _WIRE_CONFIG

    lang: str | None = None
    text: str
    syllables: list[Syllable] = Field(default_factory=list, alias="syllabus")


def _timing_of(syllable: Any) -> tuple[int, int]:
    if isinstance(syllable, Syllable):
        return syllable.start_ms, syllable.duration_ms
    start = syllable.get("time", syllable.get("start_ms"))
    duration = syllable.get("duration", syllable.get("duration_ms"))
    return int(start), int(duration)


class LyricLine(BaseModel):
    """One rendered lyric line.

    When syllables are present the line timing is always derived from them:
    ``start_ms`` is the earliest syllable start and ``duration_ms`` reaches the
    latest syllable end. Any timing passed alongside syllables is ignored.
    """

    model_config = _WIRE_CONFIG

    start_ms: int = Field(default=0, alias="time", ge=0)
    duration_ms: int = Field(default=0, alias="duration", ge=0)
    text: str = ""
    syllables: list[Syllable] = Field(default_factory=list, alias="syllabus")
    element: LineElement = Field(default_factory=LineElement)
    translation: LineTranslation | None = None
    transliteration: LineTransliteration | None = None

    @model_validator(mode="before")
    @classmethod
    def _derive_timing(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        syllables = data.get("syllabus", data.get("syllables"))
        if not syllables:
            return data
        try:
            timings = [_timing_of(s) for s in syllables]
        except (AttributeError, TypeError, ValueError):
            # Let field validation report the malformed syllable
            return data

        start = min(t[0] for t in timings)
        end = max(t[0] + t[1] for t in timings)
        derived = {
            k: v for k, v in data.items()
            if k not in ("time", "start_ms", "duration", "duration_ms")
        }
        derived["start_ms"] = start
        derived["duration_ms"] = end - start
        return derived

    @property
    def end_ms(self) -> int:
        return self.start_ms + self.duration_ms


class Agent(BaseModel):
    model_config = _WIRE_CONFIG

    type: AgentType = "person"
    name: str = ""
    alias: str = ""


class LyricsMetadata(BaseModel):
    model_config = _WIRE_CONFIG

    source: str = ""
    title: str | None = None
    artist: str | None = None
    album: str | None = None
    duration_ms: int | None = Field(default=None, alias="durationMs")
    isrc: str | None = None
    platform_id: str | None = Field(default=None, alias="platformId")
    language: str | None = None
    leading_silence: str | None = Field(default=None, alias="leadingSilence")
    songwriters: list[str] = Field(default_factory=list, alias="songWriters")
    agents: dict[str, Agent] = Field(default_factory=dict)


class LyricDocument(BaseModel):
    """Canonical (v2) lyric document. Immutable once built."""

    model_config = _WIRE_CONFIG

    sync_type: SyncType = Field(alias="type")
    metadata: LyricsMetadata = Field(default_factory=LyricsMetadata)
    lines: list[LyricLine] = Field(default_factory=list, alias="lyrics")
    cached: CacheState = "None"

    @property
    def has_syllable_sync(self) -> bool:
        return self.sync_type == "Word"

    @property
    def is_cached(self) -> bool:
        return self.cached != "None"

    def with_cache_state(self, state: CacheState) -> "LyricDocument":
        return self.model_copy(update={"cached": state})

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ── Flat (v1) layout ──────────────────────────────────────────


class FlatElement(LineElement):
    is_background: bool | None = Field(default=None, alias="isBackground")


class FlatSegment(BaseModel):
    """A syllable (or whole line, for Line sync) in the flat v1 layout."""

    model_config = _WIRE_CONFIG

    start_ms: int = Field(alias="time", ge=0)
    duration_ms: int = Field(alias="duration", ge=0)
    text: str
    is_line_ending: int = Field(default=1, alias="isLineEnding", ge=0, le=1)
    element: FlatElement = Field(default_factory=FlatElement)


class FlatDocument(BaseModel):
    model_config = _WIRE_CONFIG

    type: str = "syllable"
    metadata: LyricsMetadata = Field(default_factory=LyricsMetadata)
    lyrics: list[FlatSegment] = Field(default_factory=list)
    cached: CacheState = "None"

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
