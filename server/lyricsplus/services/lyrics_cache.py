"""Lookup of stored provider payloads by song fingerprint."""

import logging

from lyricsplus.models.song import MatchCandidate, SongIdentity, StoredFile
from lyricsplus.services.fingerprint import file_fingerprint, fingerprint_keywords, parse_file_name
from lyricsplus.services.similarity import find_best_match
from lyricsplus.services.storage import LocalFileStore

logger = logging.getLogger(__name__)


class LyricsCache:
    """Finds, reads and writes fingerprint-named files in a file store."""

    def __init__(self, files: LocalFileStore) -> None:
        self.files = files

    async def find(self, identity: SongIdentity, folder: str, mime_type: str) -> StoredFile | None:
        """Best stored file for ``identity``.

        Stored names are parsed back into identities and scored like search
        results. An identity carrying only ids is matched exactly on ISRC or
        platform id instead.
        """
        if identity.is_id_only:
            return await self.find_by_ids(identity.isrc, identity.platform_id, folder, mime_type)
        if not identity.title or not identity.artist:
            return None

        keywords = fingerprint_keywords(identity)
        if not keywords:
            return None
        files = await self.files.search(folder, keywords, mime_type)
        if not files:
            return None

        candidates = []
        for file in files:
            parsed = parse_file_name(file.name)
            candidates.append(MatchCandidate(
                title=parsed.title,
                artist=parsed.artist,
                album=parsed.album,
                duration_seconds=parsed.duration_seconds,
                isrc=parsed.isrc,
                platform_id=parsed.platform_id,
                payload=file,
            ))

        best = find_best_match(
            candidates,
            identity.title,
            identity.artist,
            identity.album,
            identity.duration_seconds,
        )
        if best is None:
            return None
        logger.debug("Cached file match %s (%.3f)", best.candidate.payload.name, best.result.score)
        return best.candidate.payload

    async def find_by_ids(
        self,
        isrc: str | None,
        platform_id: str | None,
        folder: str,
        mime_type: str,
    ) -> StoredFile | None:
        if not isrc and not platform_id:
            return None
        for file in await self.files.search(folder, [isrc or platform_id], mime_type):
            parsed = parse_file_name(file.name)
            if isrc and parsed.isrc == isrc:
                return file
            if platform_id and parsed.platform_id == platform_id:
                return file
        return None

    async def load(
        self,
        identity: SongIdentity,
        folder: str,
        mime_type: str,
    ) -> tuple[StoredFile, bytes] | None:
        file = await self.find(identity, folder, mime_type)
        if file is None:
            return None
        content = await self.files.fetch_content(file)
        if content is None:
            return None
        return file, content

    async def save(
        self,
        identity: SongIdentity,
        folder: str,
        extension: str,
        mime_type: str,
        content: bytes | str,
    ) -> StoredFile:
        """Overwrite the file already stored for ``identity``, else create one."""
        existing = await self.find(identity, folder, mime_type)
        if existing is not None:
            logger.info("Updating cached file %s", existing.name)
            return await self.files.update(existing, content)
        name = f"{file_fingerprint(identity)}.{extension}"
        return await self.files.store(folder, name, mime_type, content)
