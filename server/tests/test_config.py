"""Tests for the Settings configuration."""

from lyricsplus.config import DEFAULT_SOURCES, Settings


class TestSettings:
    def test_cors_origin_list_single(self):
        s = Settings(cors_origins="http://localhost:5173")
        assert s.cors_origin_list == ["http://localhost:5173"]

    def test_cors_origin_list_multiple(self):
        s = Settings(cors_origins="http://localhost:5173, http://example.com , https://app.test")
        assert s.cors_origin_list == [
            "http://localhost:5173",
            "http://example.com",
            "https://app.test",
        ]

    def test_default_source_list(self):
        s = Settings(default_sources=DEFAULT_SOURCES)
        assert s.default_source_list == [
            "apple",
            "lyricsplus",
            "musixmatch-word",
            "musixmatch",
            "spotify",
            "lrclib",
        ]

    def test_default_source_list_skips_blanks(self):
        s = Settings(default_sources=" spotify, ,lrclib ,")
        assert s.default_source_list == ["spotify", "lrclib"]

    def test_cache_dir_created(self, tmp_path):
        s = Settings(storage_path=str(tmp_path / "storage"))
        cache_dir = s.cache_dir
        assert cache_dir.exists()
        assert cache_dir.name == "lyrics"
        assert cache_dir.parent == tmp_path / "storage"

    def test_defaults(self):
        s = Settings(_env_file=None)
        assert s.apple_storefront == "us"
        assert s.musixmatch_app_id == "web-desktop-app-v1.0"
        assert s.musixmatch_token_ttl_seconds == 3600
        assert s.lrclib_base_url == "https://lrclib.net/api"
        assert s.http_timeout_seconds == 15.0
