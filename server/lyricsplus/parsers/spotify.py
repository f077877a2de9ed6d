"""Spotify color-lyrics payload conversion."""

import logging
import re
from typing import Any

from pydantic import ValidationError

from lyricsplus.models.lyrics import (
    LineElement,
    LyricDocument,
    LyricLine,
    LyricsMetadata,
    Syllable,
)

logger = logging.getLogger(__name__)

INSTRUMENTAL_MARK = "♪"
DEFAULT_SYLLABLE_MS = 500

_SONG_PARTS = ("Verse", "Chorus", "Bridge", "Intro", "Outro")
_STARTS_UPPER = re.compile(r"^[A-Z]")
_ENDS_PUNCT = re.compile(r"[.,!?]$")
_STARTS_PUNCT = re.compile(r"^[.,!?]")


def detect_song_part(words: str) -> str:
    text = (words or "").lower()
    for part in _SONG_PARTS:
        if part.lower() in text:
            return part
    return ""


def _ms(value: Any) -> int:
    try:
        return round(float(value))
    except (TypeError, ValueError):
        return 0


def should_add_space(syllables: list[dict[str, Any]], index: int) -> bool:
    """Whether a space follows syllable ``index`` when rendering the line.

    A gap over 100 ms, a capitalized next syllable, or punctuation on either
    side of the boundary marks a word break.
    """
    if index >= len(syllables) - 1:
        return False
    current, following = syllables[index], syllables[index + 1]
    if _ms(following.get("startTimeMs")) - _ms(current.get("endTimeMs")) > 100:
        return True
    current_text = current.get("text") or ""
    next_text = following.get("text") or ""
    return bool(
        _STARTS_UPPER.search(next_text)
        or _ENDS_PUNCT.search(current_text)
        or _STARTS_PUNCT.search(next_text)
    )


def _line_duration(lines: list[dict[str, Any]], index: int) -> int:
    line = lines[index]
    start = _ms(line.get("startTimeMs"))
    end = _ms(line.get("endTimeMs"))
    if end > start:
        return end - start
    if index + 1 < len(lines):
        return max(0, _ms(lines[index + 1].get("startTimeMs")) - start)
    return 0


def _syllable_line(line: dict[str, Any], element: LineElement) -> LyricLine | None:
    raw = line["syllables"]
    text = ""
    syllables: list[Syllable] = []
    for i, syl in enumerate(raw):
        if not syl.get("text"):
            continue
        syllable_text = syl["text"] + (" " if should_add_space(raw, i) else "")
        start = _ms(syl.get("startTimeMs"))
        end = _ms(syl.get("endTimeMs"))
        text += syllable_text
        syllables.append(Syllable(
            start_ms=start,
            duration_ms=end - start if end > start else DEFAULT_SYLLABLE_MS,
            text=syllable_text,
        ))
    if not syllables:
        return None
    return LyricLine(text=text.strip(), syllables=syllables, element=element)


def convert_spotify(payload: Any) -> LyricDocument | None:
    """Convert a Spotify lyrics payload (``{"lyrics": {...}}`` or its body).

    Word sync is used as soon as any line carries syllables. Lines that are
    empty or only an instrumental mark are dropped.
    """
    if not isinstance(payload, dict):
        return None
    body = payload.get("lyrics") if isinstance(payload.get("lyrics"), dict) else payload
    raw_lines = body.get("lines")
    if not isinstance(raw_lines, list):
        return None

    word_sync = any(isinstance(line, dict) and line.get("syllables") for line in raw_lines)
    lines: list[LyricLine] = []

    for index, line in enumerate(raw_lines):
        try:
            words = line.get("words") or ""
            is_blank = not words or words == INSTRUMENTAL_MARK
            element = LineElement(
                key=f"L{index + 1}",
                song_part=detect_song_part(words),
                singer_alias="v1" if word_sync else "",
            )
            if word_sync and line.get("syllables"):
                converted = _syllable_line(line, element)
                if converted is not None:
                    lines.append(converted)
                continue
            if is_blank:
                continue
            lines.append(LyricLine(
                start_ms=_ms(line.get("startTimeMs")),
                duration_ms=_line_duration(raw_lines, index),
                text=words,
                element=element,
            ))
        except (AttributeError, KeyError, TypeError, ValidationError) as e:
            logger.debug("Skipping malformed Spotify line %d: %s", index, e)

    songwriters = body.get("songWriters") or []
    return LyricDocument(
        sync_type="Word" if word_sync else "Line",
        metadata=LyricsMetadata(
            source=body.get("providerDisplayName") or "Spotify",
            language=body.get("language") or None,
            leading_silence="0.000",
            songwriters=[str(name) for name in songwriters],
        ),
        lines=lines,
    )
