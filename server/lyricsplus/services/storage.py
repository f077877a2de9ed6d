"""In-memory key-value store and on-disk file store.

Replace with Redis / object storage in production; the interfaces stay the
same.
"""

import logging
import threading
from pathlib import Path

import aiofiles
import aiofiles.os

from lyricsplus.config import settings
from lyricsplus.models.song import StoredFile

logger = logging.getLogger(__name__)

_MIME_BY_SUFFIX = {
    ".json": "application/json",
    ".ttml": "application/xml",
    ".xml": "application/xml",
}


class InMemoryKeyValueStore:
    """Thread-safe in-memory key-value store holding string values."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._items.get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def list_keys(self) -> list[str]:
        with self._lock:
            return list(self._items.keys())

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


# Singleton instance
kv_store = InMemoryKeyValueStore()


def mime_type_for(name: str) -> str:
    return _MIME_BY_SUFFIX.get(Path(name).suffix.lower(), "application/octet-stream")


class LocalFileStore:
    """Provider payload files kept in one directory per folder.

    File ids are ``<folder>/<name>`` relative to the store root.
    """

    def __init__(self, root: Path | str | None = None) -> None:
        self._root = Path(root) if root is not None else settings.cache_dir

    async def _folder(self, folder: str) -> Path:
        path = self._root / folder
        await aiofiles.os.makedirs(path, exist_ok=True)
        return path

    def _handle(self, folder: str, name: str) -> StoredFile:
        return StoredFile(id=f"{folder}/{name}", name=name, folder=folder, mime_type=mime_type_for(name))

    async def search(
        self,
        folder: str,
        keywords: list[str],
        mime_type: str | None = None,
    ) -> list[StoredFile]:
        """Files whose name contains every keyword (case-insensitive)."""
        wanted = [k.lower() for k in keywords if k]
        results: list[StoredFile] = []
        directory = await self._folder(folder)
        for name in sorted(await aiofiles.os.listdir(directory)):
            if not await aiofiles.os.path.isfile(directory / name):
                continue
            handle = self._handle(folder, name)
            if mime_type and handle.mime_type != mime_type:
                continue
            lowered = name.lower()
            if all(k in lowered for k in wanted):
                results.append(handle)
        return results

    async def fetch_content(self, file: StoredFile) -> bytes | None:
        path = self._root / file.id
        if not await aiofiles.os.path.isfile(path):
            logger.warning("Stored file %s is missing", file.id)
            return None
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    async def store(self, folder: str, name: str, mime_type: str, content: bytes | str) -> StoredFile:
        if Path(name).name != name:
            raise ValueError(f"Invalid file name: {name!r}")
        path = (await self._folder(folder)) / name
        data = content.encode("utf-8") if isinstance(content, str) else content
        async with aiofiles.open(path, "wb") as f:
            await f.write(data)
        logger.info("Stored %s (%s, %d bytes)", path.name, mime_type, len(data))
        return self._handle(folder, name)

    async def update(self, file: StoredFile, content: bytes | str) -> StoredFile:
        return await self.store(file.folder, file.name, file.mime_type, content)
