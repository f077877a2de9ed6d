"""Fuzzy song matching.

Scores provider search results (and cached file names) against the caller's
free-text song identity. Titles are compared on their base form, with
featured artists and qualifier tags such as "(Live)" or "- Remix" pulled out
first so that a live take never silently replaces the studio recording.
"""

import logging
import re
from functools import cmp_to_key

from pydantic import BaseModel, Field
from rapidfuzz.distance import Levenshtein

from lyricsplus.models.song import BestMatch, ComponentScores, MatchCandidate, ScoreResult

logger = logging.getLogger(__name__)

CONFIDENCE_THRESHOLD = 0.70
TITLE_THRESHOLD = 0.7
ARTIST_THRESHOLD = 0.6
MAX_DURATION_DRIFT_SECONDS = 2.0
AMBIGUITY_GAP = 0.05

CONFLICTING_TAGS = frozenset({"live", "acoustic", "remix", "instrumental"})
CRITICAL_TAGS = CONFLICTING_TAGS | {"karaoke"}

_BRACKETED = re.compile(r"\[[^\]]*\]|\([^)]*\)|\{[^}]*\}")
_BRACKET_CONTENT = re.compile(r"[\[({]([^\])}]*)[\])}]")
_DASH_SUFFIX = re.compile(r"\s-\s(.*)$")
_BRACKETED_FEAT = re.compile(r"[\[(]\s*(?:feat\.?|ft\.?|featuring|with)\s+([^\])]+)[\])]")
_TRAILING_FEAT = re.compile(r"\s(?:feat\.?|ft\.?|featuring)\s+([^()\[\]]+?)(?=\s+-\s|\s*[(\[]|$)")
_FEAT_SPLIT = re.compile(r"\s*(?:&|,|\band\b)\s*")
_LEADING_ARTICLE = re.compile(r"^(?:the|a|an)\s+")
_TRAILING_ARTICLE = re.compile(r"\s+(?:the|a|an)$")
_ARTIST_SEPARATORS = re.compile(
    r"\s*(?:&|,|\band\b|\bvs\b\.?|\bversus\b|\bx\b|\bfeat\b\.?|\bft\b\.?|\bfeaturing\b|\bwith\b)\s*"
)
_THE = re.compile(r"\bthe\b")

_TAG_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(pattern), tag)
    for pattern, tag in (
        (r"\b(?:remix|mix|rmx)\b", "remix"),
        (r"\b(?:live|concert)\b", "live"),
        (r"\b(?:acoustic|unplugged)\b", "acoustic"),
        (r"\binstrumental\b", "instrumental"),
        (r"\bkaraoke\b", "karaoke"),
        (r"\b(?:radio|single)\s?edit\b", "radioedit"),
        (r"\b(?:remaster(?:ed)?|re-?recorded?)\b", "remaster"),
        (r"\bexplicit\b", "explicit"),
        (r"\b(?:clean|censored)\b", "clean"),
        (r"\b(?:demo|rough)\b", "demo"),
        (r"\b(?:extended|ext|full)\b", "extended"),
        (r"\b(?:deluxe|anniversary|special)\b", "deluxe"),
        (r"\bmono\b", "mono"),
        (r"\bstereo\b", "stereo"),
        (r"\bedit\b", "edit"),
        (r"\b(?:version|ver)\b", "version"),
    )
)


class TitleAnalysis(BaseModel):
    base_title: str
    tags: set[str] = Field(default_factory=set)
    feat_artists: list[str] = Field(default_factory=list)


# ── String primitives ─────────────────────────────────────────


def normalize_string(value: str | None) -> str:
    """Lowercase, replace punctuation with spaces and collapse whitespace."""
    if not value:
        return ""
    value = re.sub(r"[^\w\s]", " ", value.lower())
    return re.sub(r"\s+", " ", value).strip()


def _bigrams(value: str) -> set[str]:
    return {value[i:i + 2] for i in range(len(value) - 1)}


def dice_coefficient(a: str, b: str) -> float:
    """Sørensen-Dice coefficient over the sets of character bigrams."""
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    bigrams_a, bigrams_b = _bigrams(a), _bigrams(b)
    if not bigrams_a and not bigrams_b:
        return 1.0
    if not bigrams_a or not bigrams_b:
        return 0.0
    return 2 * len(bigrams_a & bigrams_b) / (len(bigrams_a) + len(bigrams_b))


def levenshtein_distance(a: str, b: str) -> int:
    return Levenshtein.distance(a, b)


# ── Title / artist analysis ───────────────────────────────────


def _split_feat(names: str) -> list[str]:
    return [name.strip() for name in _FEAT_SPLIT.split(names) if name.strip()]


def analyze_title(title: str | None) -> TitleAnalysis:
    """Split a title into its base form, qualifier tags and featured artists.

    "Song (feat. A & B) [Live] - 2011 Remaster" gives base "song", tags
    {"live", "remaster"} and featured artists ["a", "b"].
    """
    if not title:
        return TitleAnalysis(base_title="")

    lowered = title.lower()
    feat_artists: list[str] = []
    for pattern in (_BRACKETED_FEAT, _TRAILING_FEAT):
        for match in pattern.finditer(lowered):
            feat_artists.extend(_split_feat(match.group(1)))
        lowered = pattern.sub(" ", lowered)

    segments = _BRACKET_CONTENT.findall(lowered)
    dash = _DASH_SUFFIX.search(lowered)
    if dash:
        segments.append(dash.group(1))

    tags: set[str] = set()
    for segment in segments:
        for pattern, tag in _TAG_PATTERNS:
            if pattern.search(segment):
                tags.add(tag)

    base = _DASH_SUFFIX.sub(" ", _BRACKETED.sub(" ", lowered))
    base = normalize_string(base)
    base = _TRAILING_ARTICLE.sub("", _LEADING_ARTICLE.sub("", base))

    return TitleAnalysis(base_title=base, tags=tags, feat_artists=feat_artists)


def normalize_artist_name(artist: str | None) -> str:
    """Order-insensitive artist key: "The Weeknd & Daft Punk" -> "daft punk weeknd"."""
    if not artist:
        return ""
    value = _BRACKETED.sub("", artist.lower())
    names = []
    for name in _ARTIST_SEPARATORS.split(value):
        name = re.sub(r"\s+", " ", _THE.sub("", name)).strip()
        if name:
            names.append(name)
    return " ".join(sorted(names))


# ── Component scores ──────────────────────────────────────────


def _drops_conflicting_tag(tags: set[str], other: set[str]) -> bool:
    # An untagged side never conflicts
    return bool(other) and any(tag in CONFLICTING_TAGS and tag not in other for tag in tags)


def title_similarity(a: str, b: str) -> float:
    if not a or not b:
        return 0.0
    first, second = analyze_title(a), analyze_title(b)

    if first.base_title and first.base_title == second.base_title:
        conflicting = _drops_conflicting_tag(first.tags, second.tags) or _drops_conflicting_tag(
            second.tags, first.tags
        )
        return 0.85 if conflicting else 1.0

    dice = dice_coefficient(first.base_title, second.base_title)
    levenshtein = (
        Levenshtein.normalized_similarity(first.base_title, second.base_title)
        if first.base_title or second.base_title else 0.0
    )
    similarity = dice * 0.7 + levenshtein * 0.3

    critical_first = first.tags & CRITICAL_TAGS
    critical_second = second.tags & CRITICAL_TAGS
    penalty = 0.0
    if critical_first and critical_second:
        if not critical_first & critical_second:
            penalty = 0.4
    elif critical_first or critical_second:
        penalty = 0.15

    return max(0.0, similarity - penalty)


def artist_similarity(
    a: str,
    b: str,
    a_title: TitleAnalysis | None = None,
    b_title: TitleAnalysis | None = None,
) -> float:
    """Artist score; featured artists from either title count as credits."""
    if not a or not b:
        return 0.0
    norm_a, norm_b = normalize_artist_name(a), normalize_artist_name(b)
    if norm_a == norm_b:
        return 1.0

    names_a = {norm_a}
    names_b = {norm_b}
    if a_title is not None:
        names_a.update(normalize_artist_name(name) for name in a_title.feat_artists)
    if b_title is not None:
        names_b.update(normalize_artist_name(name) for name in b_title.feat_artists)
    if names_a & names_b:
        return 0.9

    return dice_coefficient(norm_a, norm_b)


def album_similarity(a: str | None, b: str | None) -> float:
    if not a or not b:
        return 0.1
    norm_a, norm_b = normalize_string(a), normalize_string(b)
    if norm_a == norm_b:
        return 1.0
    return dice_coefficient(norm_a, norm_b)


def duration_similarity(a: float | None, b: float | None) -> float:
    if a is None or b is None:
        return 0.7
    diff = abs(a - b)
    if diff == 0:
        return 1.0
    if diff <= 2.0:
        return 0.95
    if diff <= 5:
        return 0.7
    if diff <= 10:
        return 0.4
    if diff <= 15:
        return 0.2
    return 0.05


# ── Scoring ───────────────────────────────────────────────────


def _weights(duration_known: bool, album_known: bool) -> tuple[float, float, float, float]:
    if album_known:
        return (0.3, 0.3, 0.2, 0.2) if duration_known else (0.4, 0.4, 0.2, 0.0)
    if duration_known:
        return 0.35, 0.35, 0.1, 0.2
    return 0.5, 0.4, 0.05, 0.05


def score(
    candidate: MatchCandidate,
    title: str,
    artist: str,
    album: str | None = None,
    duration: float | None = None,
) -> ScoreResult:
    """Score one candidate against the query identity (durations in seconds)."""
    if not candidate.title or not candidate.artist:
        return ScoreResult(score=0.0, reason="Missing title or artist")

    cand_duration = candidate.duration_seconds
    query_analysis = analyze_title(title)
    cand_analysis = analyze_title(candidate.title)

    components = ComponentScores(
        title=title_similarity(candidate.title, title),
        artist=artist_similarity(candidate.artist, artist or "", cand_analysis, query_analysis),
        album=album_similarity(candidate.album, album),
        duration=duration_similarity(cand_duration, duration),
    )

    if components.title < TITLE_THRESHOLD:
        return ScoreResult(
            score=min(0.4, components.title * 0.5),
            reason=f"Title similarity too low: {components.title:.3f}",
            components=components,
        )
    if components.artist < ARTIST_THRESHOLD:
        return ScoreResult(
            score=min(0.5, components.artist * 0.7),
            reason=f"Artist similarity too low: {components.artist:.3f}",
            components=components,
        )
    if (duration or 0) > 0 and (cand_duration or 0) > 0:
        drift = abs(duration - cand_duration)
        if drift > MAX_DURATION_DRIFT_SECONDS:
            return ScoreResult(
                score=min(0.6, (components.title + components.artist) / 2 * 0.8),
                reason=f"Duration difference too large: {drift:.1f}s",
                components=components,
            )

    w_title, w_artist, w_album, w_duration = _weights(
        duration_known=duration is not None and cand_duration is not None,
        album_known=bool(album and candidate.album),
    )
    total = (
        components.title * w_title
        + components.artist * w_artist
        + components.album * w_album
        + components.duration * w_duration
    )

    reason = "Good match"
    if components.title == 1.0 and components.artist >= 0.9:
        total = min(1.0, total + 0.05)
        reason = "Exact title and artist match"

    return ScoreResult(score=min(1.0, max(0.0, total)), reason=reason, components=components)


def find_best_match(
    candidates: list[MatchCandidate],
    title: str,
    artist: str,
    album: str | None = None,
    duration: float | None = None,
) -> BestMatch | None:
    """Pick the best scoring candidate, or None below the confidence threshold.

    Scores within 0.001 of each other fall back to the duration component when
    a query duration is given; otherwise the input order is kept.
    """
    if not candidates or not title:
        return None
    valid = [c for c in candidates if c.title and c.artist]
    if not valid:
        return None

    logger.debug("Matching '%s' - '%s' (%d candidates)", artist or "Unknown", title, len(valid))
    scored = [BestMatch(candidate=c, result=score(c, title, artist, album, duration)) for c in valid]

    def compare(a: BestMatch, b: BestMatch) -> int:
        diff = a.result.score - b.result.score
        if abs(diff) > 0.001:
            return -1 if diff > 0 else 1
        if duration is not None:
            gap = b.result.components.duration - a.result.components.duration
            return (gap > 0) - (gap < 0)
        return 0

    scored.sort(key=cmp_to_key(compare))
    best = scored[0]

    if best.result.score < CONFIDENCE_THRESHOLD:
        logger.debug(
            "No match: score %.3f < %.2f (%s)",
            best.result.score, CONFIDENCE_THRESHOLD, best.result.reason,
        )
        return None

    if len(scored) > 1:
        gap = best.result.score - scored[1].result.score
        if gap < AMBIGUITY_GAP and best.result.score < 0.9:
            logger.debug("Ambiguous match (gap: %.3f), selecting first", gap)

    logger.debug(
        "Match: '%s' - '%s' [%.3f]",
        best.candidate.artist, best.candidate.title, best.result.score,
    )
    return best
