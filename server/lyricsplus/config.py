from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root (one level above server/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"

DEFAULT_SOURCES = "apple,lyricsplus,musixmatch-word,musixmatch,spotify,lrclib"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Provider credentials
    apple_developer_token: str = ""
    apple_media_user_token: str = ""
    spotify_access_token: str = ""

    # Provider endpoints
    apple_api_url: str = "https://amp-api.music.apple.com/v1"
    apple_storefront: str = "us"
    musixmatch_base_url: str = "https://apic-desktop.musixmatch.com/ws/1.1"
    musixmatch_app_id: str = "web-desktop-app-v1.0"
    musixmatch_token_ttl_seconds: int = 3600
    spotify_api_url: str = "https://api.spotify.com/v1"
    spotify_lyrics_url: str = "https://spclient.wg.spotify.com/color-lyrics/v2/track/"
    spotify_credits_url: str = "https://spclient.wg.spotify.com/track-credits-view/v0/experimental/"
    lrclib_base_url: str = "https://lrclib.net/api"
    user_agent: str = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36"
    )
    http_timeout_seconds: float = 15.0

    # Resolution
    default_sources: str = DEFAULT_SOURCES

    # Storage
    storage_path: str = "./data/storage"

    # App settings
    cors_origins: str = "*"
    log_level: str = "INFO"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]

    @property
    def default_source_list(self) -> list[str]:
        return [s.strip() for s in self.default_sources.split(",") if s.strip()]

    @property
    def cache_dir(self) -> Path:
        path = Path(self.storage_path) / "lyrics"
        path.mkdir(parents=True, exist_ok=True)
        return path


settings = Settings()
