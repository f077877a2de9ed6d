"""Conversions between the flat v1 layout and the canonical v2 document."""

import logging
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from lyricsplus.models.lyrics import (
    FlatDocument,
    FlatElement,
    FlatSegment,
    LineElement,
    LyricDocument,
    LyricLine,
    Syllable,
)

logger = logging.getLogger(__name__)

_WORD_TYPES = frozenset({"syllable", "word"})


def _line_element(element: FlatElement) -> LineElement:
    return LineElement(
        key=element.key,
        song_part=element.song_part,
        singer_alias=element.singer_alias,
    )


def _close_line(group: list[FlatSegment]) -> LyricLine:
    syllables = [
        Syllable(
            start_ms=seg.start_ms,
            duration_ms=seg.duration_ms,
            text=seg.text,
            is_background_vocal=bool(seg.element.is_background),
        )
        for seg in group
    ]
    return LyricLine(
        text="".join(seg.text for seg in group).strip(),
        syllables=syllables,
        element=_line_element(group[0].element),
    )


def group_segments_into_lines(
    segments: Iterable[FlatSegment],
    keep_blank_tail: bool = False,
) -> list[LyricLine]:
    """Group a flat syllable stream into lines.

    A line closes on a segment whose ``is_line_ending`` flag is set. A trailing
    group with no closing flag is kept when it has visible text, or always when
    ``keep_blank_tail`` is set.
    """
    lines: list[LyricLine] = []
    group: list[FlatSegment] = []

    for segment in segments:
        group.append(segment)
        if segment.is_line_ending:
            lines.append(_close_line(group))
            group = []

    if group and (keep_blank_tail or "".join(s.text for s in group).strip()):
        lines.append(_close_line(group))

    return lines


def v1_to_v2(data: FlatDocument) -> LyricDocument:
    """Convert a flat v1 document into the canonical grouped form.

    ``type`` is read case-insensitively. Only ``syllable`` and ``word`` are
    grouped into Word-synced lines; anything else stays one line per segment.
    """
    kind = data.type.lower()
    if kind not in _WORD_TYPES:
        if kind != "line":
            logger.warning("Unknown v1 lyrics type %r, reading it as line-synced", data.type)
        lines = [
            LyricLine(
                start_ms=seg.start_ms,
                duration_ms=seg.duration_ms,
                text=seg.text,
                element=_line_element(seg.element),
            )
            for seg in data.lyrics
        ]
        sync_type = "Line"
    else:
        lines = group_segments_into_lines(data.lyrics, keep_blank_tail=True)
        sync_type = "Word"

    return LyricDocument(
        sync_type=sync_type,
        metadata=data.metadata,
        lines=lines,
        cached=data.cached,
    )


def v2_to_v1(data: LyricDocument | FlatDocument) -> FlatDocument:
    """Flatten a canonical document into the legacy v1 layout."""
    if isinstance(data, FlatDocument):
        logger.warning("Document is already in v1 format, no conversion needed")
        return data

    segments: list[FlatSegment] = []
    for line in data.lines:
        element = FlatElement(
            key=line.element.key,
            song_part=line.element.song_part,
            singer_alias=line.element.singer_alias,
        )
        if data.sync_type == "Line" or not line.syllables:
            segments.append(FlatSegment(
                start_ms=line.start_ms,
                duration_ms=line.duration_ms,
                text=line.text,
                is_line_ending=1,
                element=element,
            ))
            continue

        last = len(line.syllables) - 1
        for i, syllable in enumerate(line.syllables):
            segment_element = element
            if syllable.is_background_vocal:
                segment_element = element.model_copy(update={"is_background": True})
            segments.append(FlatSegment(
                start_ms=syllable.start_ms,
                duration_ms=syllable.duration_ms,
                text=syllable.text,
                is_line_ending=1 if i == last else 0,
                element=segment_element,
            ))

    return FlatDocument(
        type="syllable" if data.sync_type == "Word" else data.sync_type,
        metadata=data.metadata,
        lyrics=segments,
        cached=data.cached,
    )


def parse_lyrics_json(data: Any) -> LyricDocument | None:
    """Load a stored v1 or v2 JSON document into the canonical form.

    The layout is detected from the first lyric entry: v2 lines carry a
    ``syllabus`` list, v1 segments don't.
    """
    if not isinstance(data, dict) or not isinstance(data.get("lyrics"), list):
        return None

    lyrics = data["lyrics"]
    is_v2 = bool(lyrics) and isinstance(lyrics[0], dict) and "syllabus" in lyrics[0]
    try:
        if is_v2:
            return LyricDocument.model_validate(data)
        return v1_to_v2(FlatDocument.model_validate(data))
    except ValidationError as e:
        logger.warning("Stored lyrics document failed validation: %s", e)
        return None
