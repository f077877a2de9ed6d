"""Tests for the lyrics providers against mocked HTTP transports."""

import json

import httpx
import pytest

from lyricsplus.models.results import Found, NotFound
from lyricsplus.models.song import SongIdentity
from lyricsplus.providers.apple import AppleMusicProvider
from lyricsplus.providers.lrclib import LrclibProvider
from lyricsplus.providers.musixmatch import MusixmatchProvider, MusixmatchWordProvider
from lyricsplus.providers.spotify import SpotifyProvider
from lyricsplus.providers.submitted import SubmittedLyricsProvider
from lyricsplus.services.fingerprint import file_fingerprint
from lyricsplus.services.lyrics_cache import LyricsCache
from lyricsplus.services.storage import LocalFileStore
from lyricsplus.services.tokens import StaticTokenSource

SONG = SongIdentity(title="Blinding Lights", artist="The Weeknd", duration_seconds=200.04)

SIMPLE_TTML = """<tt xmlns="http://www.w3.org/ns/ttml"
    xmlns:itunes="http://music.apple.com/lyric-ttml-internal" itunes:timing="Word">
  <body><div>
    <p begin="1.000" end="2.000" itunes:key="L1"><span begin="1.000" end="1.500">I</span> <span begin="1.500" end="2.000">said</span></p>
  </div></body>
</tt>"""


class FakeApi:
    """Routes requests by path suffix and records every request seen."""

    def __init__(self, routes: dict[str, httpx.Response | dict | list]):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        for suffix, response in self.routes.items():
            if request.url.path.endswith(suffix):
                if isinstance(response, httpx.Response):
                    return response
                return httpx.Response(200, json=response)
        return httpx.Response(404, json={"error": "not found"})

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def cache(tmp_path):
    return LyricsCache(LocalFileStore(tmp_path))


def _client(api: FakeApi) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(api))


# ── LRCLIB ────────────────────────────────────────────────────


LRCLIB_RECORD = {
    "id": 42,
    "trackName": "Blinding Lights",
    "artistName": "The Weeknd",
    "albumName": "After Hours",
    "duration": 200.04,
    "instrumental": False,
    "syncedLyrics": "[00:10.00] I said\n[00:15.00] Ooh",
}


class TestLrclibProvider:
    @pytest.mark.asyncio
    async def test_found(self, cache: LyricsCache):
        instrumental = {**LRCLIB_RECORD, "id": 1, "instrumental": True}
        api = FakeApi({"/api/search": [instrumental, LRCLIB_RECORD]})
        client = _client(api)
        provider = LrclibProvider(lambda: client, cache)

        outcome = await provider.fetch_lyrics(SONG)

        assert isinstance(outcome, Found)
        assert outcome.source == "lrclib"
        assert outcome.document.sync_type == "Line"
        assert outcome.document.cached == "None"
        assert outcome.document.metadata.platform_id == "42"
        assert outcome.exact_metadata.platform_id == "42"
        assert outcome.raw == LRCLIB_RECORD
        assert api.requests[0].url.params["q"] == "Blinding Lights The Weeknd"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_falls_back_to_record_lookup(self, cache: LyricsCache):
        partial = {**LRCLIB_RECORD, "syncedLyrics": None}
        api = FakeApi({"/api/search": [partial], "/api/get/42": LRCLIB_RECORD})
        client = _client(api)
        provider = LrclibProvider(lambda: client, cache)

        outcome = await provider.fetch_lyrics(SONG)

        assert isinstance(outcome, Found)
        assert api.paths() == ["/api/search", "/api/get/42"]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_served_from_cache(self, cache: LyricsCache):
        stored_identity = SongIdentity(
            title="Blinding Lights", artist="The Weeknd", duration_seconds=200.04, platform_id="42",
        )
        await cache.save(stored_identity, "lrclib", "json", "application/json", json.dumps(LRCLIB_RECORD))
        api = FakeApi({})
        client = _client(api)
        provider = LrclibProvider(lambda: client, cache)

        outcome = await provider.fetch_lyrics(SONG)

        assert isinstance(outcome, Found)
        assert outcome.document.cached == "Storage"
        assert outcome.from_cache is True
        assert api.requests == []

        reloaded = await provider.fetch_lyrics(SONG, force_reload=True)
        assert isinstance(reloaded, NotFound)
        assert len(api.requests) > 0
        await client.aclose()

    @pytest.mark.asyncio
    async def test_cache_checked_again_under_matched_metadata(self, cache: LyricsCache):
        exact_identity = SongIdentity(
            title="Blinding Lights",
            artist="The Weeknd",
            album="After Hours",
            duration_seconds=200.04,
            platform_id="42",
        )
        await cache.save(exact_identity, "lrclib", "json", "application/json", json.dumps(LRCLIB_RECORD))
        # The query's album keywords miss the stored file name
        query = SongIdentity(
            title="Blinding Lights", artist="The Weeknd", album="Live Session", duration_seconds=200.04,
        )
        assert await cache.find(query, "lrclib", "application/json") is None

        # Without synced lyrics in the search record a fetch would go to /api/get
        partial = {**LRCLIB_RECORD, "syncedLyrics": None}
        api = FakeApi({"/api/search": [partial], "/api/get/42": LRCLIB_RECORD})
        client = _client(api)
        provider = LrclibProvider(lambda: client, cache)

        outcome = await provider.fetch_lyrics(query)

        assert isinstance(outcome, Found)
        assert outcome.document.cached == "Storage"
        assert outcome.exact_metadata.platform_id == "42"
        assert outcome.document.lines[0].text == "I said"
        assert all(p.endswith("/api/search") for p in api.paths())
        await client.aclose()

    @pytest.mark.asyncio
    async def test_no_match(self, cache: LyricsCache):
        api = FakeApi({"/api/search": []})
        client = _client(api)
        outcome = await LrclibProvider(lambda: client, cache).fetch_lyrics(SONG)
        assert isinstance(outcome, NotFound)
        assert outcome.reason == "No confident track match"
        # Both the combined and the title-only query were tried
        assert len(api.requests) == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_http_error_becomes_not_found(self, cache: LyricsCache):
        api = FakeApi({"/api/search": httpx.Response(500, text="boom")})
        client = _client(api)
        outcome = await LrclibProvider(lambda: client, cache).fetch_lyrics(SONG)
        assert isinstance(outcome, NotFound)
        assert "500" in outcome.reason
        await client.aclose()

    @pytest.mark.asyncio
    async def test_id_only_identity_without_cache(self, cache: LyricsCache):
        api = FakeApi({})
        client = _client(api)
        outcome = await LrclibProvider(lambda: client, cache).fetch_lyrics(SongIdentity(isrc="USUG11904206"))
        assert isinstance(outcome, NotFound)
        assert api.requests == []
        await client.aclose()


# ── Musixmatch ────────────────────────────────────────────────


def _mxm(body: dict, status: int = 200) -> dict:
    return {"message": {"header": {"status_code": status}, "body": body}}


class RecordingTokenSource(StaticTokenSource):
    def __init__(self, token: str):
        super().__init__(token)
        self.invalidated = 0

    def invalidate(self) -> None:
        self.invalidated += 1


MXM_TRACK = {
    "track_id": 777,
    "track_name": "Blinding Lights",
    "artist_name": "The Weeknd",
    "album_name": "After Hours",
    "track_length": 200,
    "track_isrc": "USUG11904206",
}

RICHSYNC_BODY = json.dumps([
    {"ts": 1.0, "te": 2.0, "x": "I said", "l": [{"c": "I", "o": 0}, {"c": " ", "o": 0.2}, {"c": "said", "o": 0.3}]},
])


class TestMusixmatchProvider:
    @pytest.mark.asyncio
    async def test_word_provider_uses_richsync(self, cache: LyricsCache):
        api = FakeApi({
            "/track.search": _mxm({"track_list": [{"track": MXM_TRACK}]}),
            "/track.richsync.get": _mxm({"richsync": {"richsync_body": RICHSYNC_BODY}}),
        })
        client = _client(api)
        provider = MusixmatchWordProvider(lambda: client, cache, StaticTokenSource("tok"))

        outcome = await provider.fetch_lyrics(SONG)

        assert isinstance(outcome, Found)
        assert outcome.source == "musixmatch-word"
        assert outcome.document.sync_type == "Word"
        assert outcome.document.lines[0].text == "I said"
        assert outcome.raw["type"] == "richsync"
        assert api.requests[0].url.params["usertoken"] == "tok"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_word_provider_without_richsync(self, cache: LyricsCache):
        api = FakeApi({
            "/track.search": _mxm({"track_list": [{"track": MXM_TRACK}]}),
            "/track.richsync.get": _mxm({}, status=404),
            "/track.subtitle.get": _mxm({"subtitle": {"subtitle_body": "[00:01.00] I said"}}),
        })
        client = _client(api)
        provider = MusixmatchWordProvider(lambda: client, cache, StaticTokenSource("tok"))

        outcome = await provider.fetch_lyrics(SONG)

        assert isinstance(outcome, NotFound)
        assert not any(p.endswith("track.subtitle.get") for p in api.paths())
        await client.aclose()

    @pytest.mark.asyncio
    async def test_any_sync_falls_back_to_subtitle(self, cache: LyricsCache):
        api = FakeApi({
            "/track.search": _mxm({"track_list": [{"track": MXM_TRACK}]}),
            "/track.richsync.get": _mxm({}, status=404),
            "/track.subtitle.get": _mxm({"subtitle": {"subtitle_body": "[00:01.00] I said"}}),
        })
        client = _client(api)
        provider = MusixmatchProvider(lambda: client, cache, StaticTokenSource("tok"))

        outcome = await provider.fetch_lyrics(SONG)

        assert isinstance(outcome, Found)
        assert outcome.document.sync_type == "Line"
        assert outcome.raw["type"] == "subtitle"
        assert outcome.document.metadata.isrc == "USUG11904206"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_rejected_token_is_invalidated(self, cache: LyricsCache):
        api = FakeApi({"/track.search": _mxm({}, status=401)})
        client = _client(api)
        tokens = RecordingTokenSource("expired")
        provider = MusixmatchProvider(lambda: client, cache, tokens)

        outcome = await provider.fetch_lyrics(SONG)

        assert isinstance(outcome, NotFound)
        assert "401" in outcome.reason
        assert tokens.invalidated == 1
        await client.aclose()

    @pytest.mark.asyncio
    async def test_missing_token(self, cache: LyricsCache):
        api = FakeApi({})
        client = _client(api)
        provider = MusixmatchProvider(lambda: client, cache, StaticTokenSource(""))
        outcome = await provider.fetch_lyrics(SONG)
        assert isinstance(outcome, NotFound)
        assert api.requests == []
        await client.aclose()


# ── Spotify ───────────────────────────────────────────────────


SPOTIFY_TRACK = {
    "id": "0VjIjW4GlUZAMYd2vXMi3b",
    "name": "Blinding Lights",
    "artists": [{"name": "The Weeknd"}],
    "album": {"name": "After Hours"},
    "duration_ms": 200040,
    "external_ids": {"isrc": "USUG11904206"},
}


class TestSpotifyProvider:
    @pytest.mark.asyncio
    async def test_found_with_songwriters(self, cache: LyricsCache):
        api = FakeApi({
            "/v1/search": {"tracks": {"items": [SPOTIFY_TRACK]}},
            "/color-lyrics/v2/track/0VjIjW4GlUZAMYd2vXMi3b": {"lyrics": {
                "syncType": "LINE_SYNCED",
                "lines": [{"startTimeMs": "1000", "words": "I said", "endTimeMs": "0"}],
            }},
            "/experimental/0VjIjW4GlUZAMYd2vXMi3b": {"roleCredits": [
                {"roleTitle": "Performers", "artists": [{"name": "The Weeknd"}]},
                {"roleTitle": "Writers", "artists": [{"name": "Abel Tesfaye"}, {"name": "Max Martin"}]},
            ]},
        })
        client = _client(api)
        provider = SpotifyProvider(lambda: client, cache, StaticTokenSource("sp"))

        outcome = await provider.fetch_lyrics(SONG)

        assert isinstance(outcome, Found)
        assert outcome.document.metadata.songwriters == ["Abel Tesfaye", "Max Martin"]
        assert outcome.document.metadata.platform_id == "0VjIjW4GlUZAMYd2vXMi3b"
        assert api.requests[0].headers["Authorization"] == "Bearer sp"
        assert api.requests[0].url.params["q"] == "Blinding Lights artist:The Weeknd"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_credits_failure_is_not_fatal(self, cache: LyricsCache):
        api = FakeApi({
            "/v1/search": {"tracks": {"items": [SPOTIFY_TRACK]}},
            "/color-lyrics/v2/track/0VjIjW4GlUZAMYd2vXMi3b": {"lyrics": {
                "lines": [{"startTimeMs": "1000", "words": "I said", "endTimeMs": "2000"}],
            }},
        })
        client = _client(api)
        outcome = await SpotifyProvider(lambda: client, cache, StaticTokenSource("sp")).fetch_lyrics(SONG)
        assert isinstance(outcome, Found)
        assert outcome.document.metadata.songwriters == []
        await client.aclose()


# ── Apple Music ───────────────────────────────────────────────


APPLE_SONG = {
    "id": "1488408568",
    "attributes": {
        "name": "Blinding Lights",
        "artistName": "The Weeknd",
        "albumName": "After Hours",
        "durationInMillis": 200040,
        "isrc": "USUG11904206",
        "genreNames": ["R&B/Soul"],
        "url": "https://music.apple.com/us/song/1488408568",
        "hasLyrics": True,
    },
}


class TestAppleMusicProvider:
    def _api(self):
        return FakeApi({
            "/v1/catalog/us/search": {"results": {"songs": {"data": [APPLE_SONG]}}},
            "/v1/catalog/us/songs/1488408568/syllable-lyrics": {
                "data": [{"attributes": {"ttml": SIMPLE_TTML}}],
            },
        })

    @pytest.mark.asyncio
    async def test_found(self, cache: LyricsCache):
        api = self._api()
        client = _client(api)
        provider = AppleMusicProvider(lambda: client, cache, StaticTokenSource("dev"))

        outcome = await provider.fetch_lyrics(SONG)

        assert isinstance(outcome, Found)
        assert outcome.raw == SIMPLE_TTML
        assert outcome.document.sync_type == "Word"
        assert outcome.document.metadata.artist == "The Weeknd"
        assert outcome.document.metadata.source == "Apple Music"
        assert api.requests[0].headers["Authorization"] == "Bearer dev"
        assert provider.dump_raw(outcome.raw) == SIMPLE_TTML
        await client.aclose()

    @pytest.mark.asyncio
    async def test_lookup_metadata_hides_playback_attributes(self, cache: LyricsCache):
        client = _client(self._api())
        provider = AppleMusicProvider(lambda: client, cache, StaticTokenSource("dev"))

        metadata = await provider.lookup_metadata(SONG)

        assert metadata["genreNames"] == ["R&B/Soul"]
        assert "url" not in metadata
        assert "hasLyrics" not in metadata
        await client.aclose()

    @pytest.mark.asyncio
    async def test_catalog_entry(self, cache: LyricsCache, tmp_path):
        client = _client(self._api())
        provider = AppleMusicProvider(lambda: client, cache, StaticTokenSource("dev"))
        outcome = await provider.fetch_lyrics(SONG)
        identity = outcome.exact_metadata.to_identity()
        stored = await cache.save(identity, "apple", "ttml", "application/xml", outcome.raw)

        entry = provider.catalog_entry(outcome, identity, stored)

        assert entry.id == "1488408568"
        assert entry.track_name == "Blinding Lights"
        assert entry.ttml_file_id == stored.id
        await client.aclose()


# ── Submitted lyrics ──────────────────────────────────────────


class TestSubmittedLyricsProvider:
    @pytest.mark.asyncio
    async def test_reads_store(self, cache: LyricsCache):
        document = {
            "type": "Line",
            "metadata": {"source": "LyricsPlus"},
            "lyrics": [{"time": 1000, "duration": 1000, "text": "I said", "syllabus": []}],
        }
        name = file_fingerprint(SONG) + ".json"
        await cache.files.store("lyricsplus", name, "application/json", json.dumps(document))
        api = FakeApi({})
        client = _client(api)

        outcome = await SubmittedLyricsProvider(lambda: client, cache).fetch_lyrics(SONG)

        assert isinstance(outcome, Found)
        assert outcome.source == "lyricsplus"
        assert outcome.document.lines[0].text == "I said"
        assert api.requests == []
        await client.aclose()

    @pytest.mark.asyncio
    async def test_nothing_submitted(self, cache: LyricsCache):
        client = _client(FakeApi({}))
        outcome = await SubmittedLyricsProvider(lambda: client, cache).fetch_lyrics(SONG)
        assert isinstance(outcome, NotFound)
        await client.aclose()
