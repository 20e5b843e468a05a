"""Local filesystem storage for raw score files."""

import asyncio
import logging
import os
import uuid
from pathlib import Path

from mushee.domain.exceptions import (
    EntityNotFoundException,
    StorageUnavailableError,
    ValidationException,
)
from mushee.domain.ports import IScoreFileStorage
from mushee.domain.value_objects.content_hash import is_content_hash

logger = logging.getLogger(__name__)

SCORE_FILE_SUFFIX = ".musicxml"


class LocalScoreFileStorage(IScoreFileStorage):
    """Stores raw uploads under {base}/{hash[:2]}/{hash}.musicxml.

    Hey future me - files are content addressed, so two uploads of the same bytes land on the
    same path with the same content. That makes save() safe to call twice (or concurrently)
    without any coordination. We still write to a temp file and os.replace() it into place so
    a reader never sees half a file. Sharding by the first 2 hash chars keeps directories small.

    References returned by save() are RELATIVE to the base path - that's what goes into the
    scores.file_reference column, so moving the storage root only means changing the setting.
    """

    def __init__(self, base_path: Path) -> None:
        self.base_path = Path(base_path)

    def _relative_path(self, content_hash: str) -> str:
        return f"{content_hash[:2]}/{content_hash}{SCORE_FILE_SUFFIX}"

    def _resolve(self, reference: str) -> Path:
        full_path = (self.base_path / reference).resolve()
        # References come from our own DB, but never follow one out of the storage root
        if not full_path.is_relative_to(self.base_path.resolve()):
            raise ValidationException(f"Invalid storage reference: {reference}")
        return full_path

    def _write_sync(self, full_path: Path, data: bytes) -> None:
        full_path.parent.mkdir(parents=True, exist_ok=True)
        # One temp file per write: concurrent uploads of the same bytes must not share it
        tmp_path = full_path.with_suffix(f"{full_path.suffix}.{uuid.uuid4().hex}.tmp")
        tmp_path.write_bytes(data)
        os.replace(tmp_path, full_path)

    async def save(self, content_hash: str, data: bytes) -> str:
        """Store bytes under their content hash and return the relative reference."""
        if not is_content_hash(content_hash):
            raise ValidationException(f"Not a content hash: {content_hash!r}")

        relative_path = self._relative_path(content_hash)
        full_path = self._resolve(relative_path)

        if await asyncio.to_thread(full_path.exists):
            logger.debug("Score file already stored: %s", relative_path)
            return relative_path

        try:
            await asyncio.to_thread(self._write_sync, full_path, data)
        except OSError as e:
            logger.error("Failed to store score file %s: %s", relative_path, e)
            raise StorageUnavailableError(f"Could not store score file: {e}") from e

        logger.debug("Stored score file: %s (%d bytes)", relative_path, len(data))
        return relative_path

    async def read(self, reference: str) -> bytes:
        """Read a stored score file back."""
        full_path = self._resolve(reference)
        try:
            return await asyncio.to_thread(full_path.read_bytes)
        except FileNotFoundError as e:
            raise EntityNotFoundException("ScoreFile", reference) from e
        except OSError as e:
            logger.error("Failed to read score file %s: %s", reference, e)
            raise StorageUnavailableError(f"Could not read score file: {e}") from e
