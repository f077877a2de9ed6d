"""Line-synced text (LRC) parsing."""

import re
from typing import Any

from lyricsplus.models.lyrics import LineElement, LyricDocument, LyricLine, LyricsMetadata
from lyricsplus.parsers.timing import seconds_to_ms

_MARKER = re.compile(r"\s*\[(\d+):(\d{1,2})(?:[.:](\d{1,3}))?\]")


def marker_to_ms(minutes: str, seconds: str, fraction: str | None) -> int:
    """Integer milliseconds for an ``[mm:ss.xx]`` marker.

    The fraction is read by digit count: ``.5`` is 500 ms, ``.05`` is 50 ms,
    ``.005`` is 5 ms.
    """
    ms = int(minutes) * 60_000 + int(seconds) * 1000
    if fraction:
        ms += int(fraction.ljust(3, "0"))
    return ms


def parse_lrc(
    text: str,
    total_duration_ms: int | None = None,
    last_line_duration_ms: int = 0,
) -> list[LyricLine]:
    """Parse LRC text into Line-synced lines.

    Each line lasts until the next marker. The last one lasts until
    ``total_duration_ms`` when known, else ``last_line_duration_ms``. Lines
    whose text is empty are dropped once durations are settled, so an empty
    marker still ends the line before it. Lines without a marker are skipped.
    A line with several leading markers repeats at each of them.
    """
    entries: list[tuple[int, str]] = []
    for raw in (text or "").splitlines():
        raw = raw.strip()
        starts: list[int] = []
        pos = 0
        match = _MARKER.match(raw)
        while match:
            starts.append(marker_to_ms(*match.groups()))
            pos = match.end()
            match = _MARKER.match(raw, pos)
        body = raw[pos:].strip()
        entries.extend((start, body) for start in starts)
    entries.sort(key=lambda entry: entry[0])

    lines: list[LyricLine] = []
    for index, (start, body) in enumerate(entries):
        if index + 1 < len(entries):
            duration = entries[index + 1][0] - start
        elif total_duration_ms is not None:
            duration = total_duration_ms - start
        else:
            duration = last_line_duration_ms

        if not body:
            continue
        lines.append(LyricLine(
            start_ms=start,
            duration_ms=max(0, duration),
            text=body,
            element=LineElement(key=f"L{index + 1}"),
        ))
    return lines


def convert_lrclib(payload: Any) -> LyricDocument | None:
    """Convert an LRCLIB record (``syncedLyrics`` + ``duration`` in seconds)."""
    if not isinstance(payload, dict):
        return None
    synced = payload.get("syncedLyrics") or ""
    if not synced.strip():
        return None

    duration = payload.get("duration")
    total_ms = seconds_to_ms(duration) if duration else None
    platform_id = payload.get("id")

    return LyricDocument(
        sync_type="Line",
        metadata=LyricsMetadata(
            source="LRCLIB",
            title=payload.get("trackName") or None,
            artist=payload.get("artistName") or None,
            album=payload.get("albumName") or None,
            duration_ms=total_ms,
            platform_id=str(platform_id) if platform_id is not None else None,
        ),
        lines=parse_lrc(synced, total_duration_ms=total_ms),
    )
