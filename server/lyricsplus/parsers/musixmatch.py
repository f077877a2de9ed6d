"""Musixmatch payload conversion (richsync and LRC subtitle bodies)."""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from lyricsplus.models.lyrics import (
    FlatSegment,
    LineElement,
    LyricDocument,
    LyricLine,
    LyricsMetadata,
)
from lyricsplus.parsers.flat import group_segments_into_lines
from lyricsplus.parsers.lrc import parse_lrc
from lyricsplus.parsers.timing import seconds_to_ms

logger = logging.getLogger(__name__)

_WRITERS = re.compile(r"Writer\(s\):\s*([^\n]+)", re.IGNORECASE)

# Fallback length of the final subtitle line, which has no successor marker
SUBTITLE_LAST_LINE_MS = 3000


def extract_songwriters(copyright_text: str | None) -> list[str]:
    """Pull the names out of a ``Writer(s): a, b`` copyright fragment."""
    if not copyright_text:
        return []
    match = _WRITERS.search(copyright_text)
    if not match:
        return []
    return [name.strip() for name in match.group(1).split(",") if name.strip()]


def _dig(data: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def parse_richsync(richsync_body: str | None, word_level: bool = False) -> list[FlatSegment]:
    """Flatten a richsync body into segments.

    At word level every ``l`` entry becomes a segment that lasts until the
    next word's offset (the last word runs to the line end); otherwise each
    line becomes one segment. Malformed lines are skipped.
    """
    try:
        richsync = json.loads(richsync_body or "[]")
    except json.JSONDecodeError:
        logger.warning("Richsync body is not valid JSON")
        return []
    if not isinstance(richsync, list):
        return []

    segments: list[FlatSegment] = []
    for line in richsync:
        try:
            line_start = seconds_to_ms(line["ts"])
            line_end = seconds_to_ms(line["te"])
            if not word_level:
                segments.append(FlatSegment(
                    start_ms=line_start,
                    duration_ms=max(0, line_end - line_start),
                    text=line["x"],
                    is_line_ending=1,
                ))
                continue

            words = line["l"]
            line_segments: list[FlatSegment] = []
            for i, word in enumerate(words):
                word_start = line_start + seconds_to_ms(word["o"])
                has_next = i + 1 < len(words)
                word_end = line_start + seconds_to_ms(words[i + 1]["o"]) if has_next else line_end
                line_segments.append(FlatSegment(
                    start_ms=word_start,
                    duration_ms=max(0, word_end - word_start),
                    text=word["c"],
                    is_line_ending=0 if has_next else 1,
                ))
            segments.extend(line_segments)
        except (KeyError, TypeError, ValidationError) as e:
            logger.debug("Skipping malformed richsync line: %s", e)

    return segments


def _keyed(lines: list[LyricLine]) -> list[LyricLine]:
    return [
        line.model_copy(update={"element": LineElement(key=f"L{i}")})
        for i, line in enumerate(lines, start=1)
    ]


def convert_musixmatch(data: Any, require_word_sync: bool = False) -> LyricDocument | None:
    """Convert a stored Musixmatch payload ``{track, lyrics, type}``.

    Richsync yields Word sync when ``require_word_sync`` is set and Line sync
    otherwise; a subtitle body always yields Line sync. Returns None when the
    payload holds neither.
    """
    body = _dig(data, "lyrics", "message", "body")
    richsync = _dig(body, "richsync")
    subtitle = _dig(body, "subtitle")

    if isinstance(richsync, dict):
        segments = parse_richsync(richsync.get("richsync_body"), word_level=require_word_sync)
        copyright_text = richsync.get("lyrics_copyright")
        if require_word_sync:
            sync_type = "Word"
            lines = group_segments_into_lines(segments)
        else:
            sync_type = "Line"
            lines = [
                LyricLine(start_ms=s.start_ms, duration_ms=s.duration_ms, text=s.text)
                for s in segments
            ]
    elif isinstance(subtitle, dict):
        copyright_text = subtitle.get("lyrics_copyright")
        sync_type = "Line"
        lines = parse_lrc(
            subtitle.get("subtitle_body") or "",
            last_line_duration_ms=SUBTITLE_LAST_LINE_MS,
        )
    else:
        return None

    track = _dig(data, "track") or {}
    track_length = track.get("track_length")
    track_id = track.get("track_id")
    metadata = LyricsMetadata(
        source="Musixmatch",
        title=track.get("track_name") or None,
        artist=track.get("artist_name") or None,
        album=track.get("album_name") or None,
        duration_ms=seconds_to_ms(track_length) if track_length else None,
        isrc=track.get("track_isrc") or None,
        platform_id=str(track_id) if track_id is not None else None,
        leading_silence="0.000",
        songwriters=extract_songwriters(copyright_text),
    )
    return LyricDocument(sync_type=sync_type, metadata=metadata, lines=_keyed(lines))
