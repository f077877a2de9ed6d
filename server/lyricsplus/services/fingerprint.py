"""Deterministic cache file names for a song identity.

A fingerprint reads ``Artist - Title [Album] (185.75) <ISRC::platformId>``;
``parse_file_name`` reverses it so cached files can be scored like search
results.
"""

import logging
import re
import time

from lyricsplus.models.song import SongIdentity

logger = logging.getLogger(__name__)

_EXTENSION = re.compile(r"\.[A-Za-z0-9]{1,5}$")
_UNSAFE = re.compile(r'[<>:"/\\|?*]')
_IDS = re.compile(r"\s*<([^>]+?)::([^>]+?)>$")
_DURATION = re.compile(r"\s\((\d+(?:\.\d+)?)\)$")
_ALBUM = re.compile(r"\s\[([^\]]+)\]$")
_ARTIST_TITLE = re.compile(r"^(.+?)\s*-\s*(.+)$")


def cleanup(text: str) -> str:
    """Drop characters that are unsafe in file names and collapse whitespace."""
    return re.sub(r"\s+", " ", _UNSAFE.sub("", text)).strip()


def file_fingerprint(identity: SongIdentity) -> str:
    if not identity.title or not identity.artist:
        logger.warning("Missing song title or artist for fingerprint")
        return f"unknown-{int(time.time() * 1000)}"

    album = f" [{cleanup(identity.album)}]" if identity.album else ""
    duration = f" ({identity.duration_seconds:.2f})" if identity.duration_seconds else ""
    isrc = identity.isrc.strip() if identity.isrc is not None else "null"
    platform_id = identity.platform_id.strip() if identity.platform_id is not None else "null"
    return (
        f"{cleanup(identity.artist)} - {cleanup(identity.title)}"
        f"{album}{duration} <{isrc}::{platform_id}>"
    )


def parse_file_name(name: str) -> SongIdentity:
    """Recover the identity encoded in a fingerprint file name.

    Parts that are missing from the name stay unset; a name without the
    ``Artist - `` prefix is read as a bare title.
    """
    stem = _EXTENSION.sub("", name)
    isrc = platform_id = None
    duration = None
    album = None

    ids = _IDS.search(stem)
    if ids:
        isrc = None if ids.group(1) == "null" else ids.group(1).strip()
        platform_id = None if ids.group(2) == "null" else ids.group(2).strip()
        stem = stem[:ids.start()].strip()

    match = _DURATION.search(stem)
    if match:
        duration = float(match.group(1))
        stem = stem[:match.start()]

    match = _ALBUM.search(stem)
    if match:
        album = match.group(1).strip()
        stem = stem[:match.start()]

    match = _ARTIST_TITLE.match(stem)
    if match:
        artist, title = match.group(1).strip(), match.group(2).strip()
    else:
        artist, title = "", stem.strip()

    return SongIdentity(
        title=title,
        artist=artist,
        album=album,
        duration_seconds=duration,
        isrc=isrc,
        platform_id=platform_id,
    )


def fingerprint_keywords(identity: SongIdentity) -> list[str]:
    """Search keywords: the first two words over three characters of each field."""
    keywords: list[str] = []
    for text in (identity.title, identity.artist, identity.album):
        words = [w for w in cleanup(text or "").split(" ") if len(w) > 3]
        keywords.extend(words[:2])
    return keywords
