"""Provider credentials as injected collaborators.

Each source owns its token and its expiry; providers only ever call
``get_valid()``.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Protocol

import httpx

from lyricsplus.config import settings
from lyricsplus.models.results import ProviderError

logger = logging.getLogger(__name__)


class TokenSource(Protocol):
    async def get_valid(self) -> str: ...

    def invalidate(self) -> None: ...


class StaticTokenSource:
    """A token supplied through configuration."""

    def __init__(self, token: str | None, label: str = "token") -> None:
        self._token = token
        self._label = label

    async def get_valid(self) -> str:
        if not self._token:
            raise ProviderError(f"{self._label} is not configured")
        return self._token

    def invalidate(self) -> None:
        """Configured tokens cannot be refreshed."""


class MusixmatchTokenSource:
    """Fetches and caches a Musixmatch desktop user token."""

    def __init__(
        self,
        client: Callable[[], httpx.AsyncClient],
        ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.musixmatch_token_ttl_seconds
        self._clock = clock
        self._token: str | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = 0.0

    async def get_valid(self) -> str:
        async with self._lock:
            if self._token and self._clock() < self._expires_at:
                return self._token
            token = await self._fetch()
            self._token = token
            self._expires_at = self._clock() + self._ttl
            logger.info("Fetched new Musixmatch user token")
            return token

    async def _fetch(self) -> str:
        try:
            resp = await self._client().get(
                f"{settings.musixmatch_base_url}/token.get",
                params={"app_id": settings.musixmatch_app_id},
                headers={"User-Agent": settings.user_agent},
            )
            resp.raise_for_status()
            message = resp.json().get("message") or {}
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderError(f"Musixmatch token request failed: {e}") from e

        status = (message.get("header") or {}).get("status_code")
        token = (message.get("body") or {}).get("user_token")
        if status != 200 or not token or "UpgradeOnly" in token:
            raise ProviderError("Invalid token received from Musixmatch")
        return token
