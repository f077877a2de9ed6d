"""Tests for fuzzy song matching."""

import pytest

from lyricsplus.models.song import MatchCandidate
from lyricsplus.services.similarity import (
    CONFIDENCE_THRESHOLD,
    analyze_title,
    artist_similarity,
    dice_coefficient,
    duration_similarity,
    find_best_match,
    levenshtein_distance,
    normalize_artist_name,
    normalize_string,
    score,
    title_similarity,
)


class TestStringPrimitives:
    def test_normalize_string(self):
        assert normalize_string("  Hello,   World! ") == "hello world"
        assert normalize_string(None) == ""

    def test_dice_coefficient(self):
        assert dice_coefficient("night", "nacht") == 0.25
        assert dice_coefficient("same", "same") == 1.0
        assert dice_coefficient("", "") == 1.0
        assert dice_coefficient("abc", "") == 0.0

    def test_levenshtein_distance(self):
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("same", "same") == 0

    def test_near_miss_title_blends_dice_and_edit_distance(self):
        # dice 6/9, edit similarity 1 - 1/6
        assert title_similarity("Colour", "Color") == pytest.approx(0.7167, abs=1e-3)


class TestAnalyzeTitle:
    def test_full_breakdown(self):
        analysis = analyze_title("Song (feat. A & B) [Live] - 2011 Remaster")
        assert analysis.base_title == "song"
        assert analysis.tags == {"live", "remaster"}
        assert analysis.feat_artists == ["a", "b"]

    def test_trailing_feat(self):
        analysis = analyze_title("Stay ft. Justin Bieber")
        assert analysis.base_title == "stay"
        assert analysis.feat_artists == ["justin bieber"]

    def test_with_only_counts_inside_brackets(self):
        assert analyze_title("Stay With Me").base_title == "stay with me"
        assert analyze_title("Song (with Guest)").feat_artists == ["guest"]

    def test_articles_stripped(self):
        assert analyze_title("The Scientist").base_title == "scientist"

    def test_tags_need_word_boundaries(self):
        assert analyze_title("Song (Mixtape Cut)").tags == set()
        assert analyze_title("Song - Radio Edit").tags == {"radioedit", "edit"}

    def test_empty(self):
        assert analyze_title(None).base_title == ""


class TestComponentScores:
    def test_normalize_artist_name_is_order_insensitive(self):
        assert normalize_artist_name("The Weeknd & Daft Punk") == "daft punk weeknd"
        assert normalize_artist_name("Daft Punk, The Weeknd") == "daft punk weeknd"

    def test_conflicting_tags_lower_title_score(self):
        assert title_similarity("Song (Live)", "Song (Acoustic)") == 0.85
        assert title_similarity("Song (Live)", "Song (Live)") == 1.0

    def test_conflicting_tag_checked_in_both_orders(self):
        assert title_similarity("Song (Remastered)", "Song (Live)") == 0.85
        assert title_similarity("Song (Live)", "Song (Remastered)") == 0.85
        assert title_similarity("Song", "Song (Live)") == 1.0

    def test_artist_credited_as_featured(self):
        cand = analyze_title("This Is What You Came For (feat. Rihanna)")
        assert artist_similarity("Calvin Harris", "Rihanna", cand, None) == 0.9

    def test_duration_similarity_steps(self):
        assert duration_similarity(200, 200) == 1.0
        assert duration_similarity(200, 201.5) == 0.95
        assert duration_similarity(200, 204) == 0.7
        assert duration_similarity(200, 230) == 0.05
        assert duration_similarity(None, 200) == 0.7


class TestScore:
    def test_exact_match(self):
        candidate = MatchCandidate(
            title="Blinding Lights",
            artist="The Weeknd",
            album="After Hours",
            duration_seconds=200.04,
        )
        result = score(candidate, "Blinding Lights", "The Weeknd", "After Hours", 200.0)
        assert result.score >= 0.95
        assert result.reason == "Exact title and artist match"

    def test_title_too_low(self):
        candidate = MatchCandidate(title="Imagine Dragons", artist="John Lennon")
        result = score(candidate, "Imagine", "John Lennon")
        assert result.reason.startswith("Title similarity too low")
        assert result.score <= 0.4

    def test_artist_too_low(self):
        candidate = MatchCandidate(title="Hello", artist="Lionel Richie")
        result = score(candidate, "Hello", "Adele")
        assert result.reason.startswith("Artist similarity too low")

    def test_duration_drift_rejected(self):
        candidate = MatchCandidate(title="Song (Remix)", artist="Artist", duration_seconds=210)
        result = score(candidate, "Song", "Artist", duration=200)
        assert result.reason == "Duration difference too large: 10.0s"
        assert result.score < CONFIDENCE_THRESHOLD

    def test_missing_fields(self):
        result = score(MatchCandidate(title="", artist="x"), "Song", "Artist")
        assert result.score == 0.0


class TestFindBestMatch:
    def test_picks_studio_over_remix(self):
        studio = MatchCandidate(title="Song", artist="Artist", duration_seconds=200, payload="studio")
        remix = MatchCandidate(title="Song (Remix)", artist="Artist", duration_seconds=210, payload="remix")
        best = find_best_match([remix, studio], "Song", "Artist", duration=200)
        assert best is not None
        assert best.candidate.payload == "studio"

    def test_exact_match_beats_remix_distractor(self):
        exact = MatchCandidate(title="Blinding Lights", artist="The Weeknd", duration_seconds=200)
        remix = MatchCandidate(title="Blinding Lights (Remix)", artist="The Weeknd", duration_seconds=210)
        best = find_best_match([remix, exact], "Blinding Lights", "The Weeknd", duration=200)
        assert best.candidate == exact
        assert best.result.score >= 0.95
        assert best.result.reason == "Exact title and artist match"

    def test_remaster_is_not_an_exact_match_for_live_query(self):
        remaster = MatchCandidate(title="Song (Remastered)", artist="Artist")
        best = find_best_match([remaster], "Song (Live)", "Artist", duration=200)
        assert best is not None
        assert best.result.reason == "Good match"
        assert best.result.score == pytest.approx(0.865)

    def test_rejects_similar_band_name(self):
        candidate = MatchCandidate(title="Imagine Dragons", artist="John Lennon")
        assert find_best_match([candidate], "Imagine", "John Lennon") is None

    def test_ties_keep_input_order(self):
        first = MatchCandidate(title="Song", artist="Artist", payload=1)
        second = MatchCandidate(title="Song", artist="Artist", payload=2)
        best = find_best_match([first, second], "Song", "Artist")
        assert best.candidate.payload == 1

    def test_empty_inputs(self):
        assert find_best_match([], "Song", "Artist") is None
        assert find_best_match([MatchCandidate(title="Song", artist="Artist")], "", "Artist") is None
        assert find_best_match([MatchCandidate(title="", artist="")], "Song", "Artist") is None
