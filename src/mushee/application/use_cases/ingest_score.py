"""Use case for ingesting an uploaded score file into a user's collection.

Hey future me - this is the heart of the upload flow and it owns the dedup invariant:
ONE CanonicalScore per distinct file content, ONE link per (user, score).

The flow:
1. Validate extension, declared content type and size - cheap checks, no parsing yet
2. Hash the bytes AND parse/extract metadata concurrently (both on worker threads)
   -> a corrupt document fails here, before we touch any storage
3. Look up the score by hash
   - found: duplicate=True, reuse it as-is (first-seen metadata wins, no merging!)
   - not found: fill placeholders, store the raw file, insert the record. If the insert loses
     a race against a concurrent upload of the same bytes, the repository raises
     DuplicateEntityException and we fall back to the lookup path. That's an expected outcome,
     never an error for the user.
4. Link the score into the user's collection (re-linking is a no-op)
5. Return the outcome: status, metadata, hash, link timestamp

Errors that reach the caller: InvalidFileFormatError, FileTooLargeError, InvalidDocumentError,
StorageUnavailableError. Nothing is retried here - storage failures surface as-is.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import PurePath

from mushee.application.use_cases import UseCase
from mushee.config.settings import UploadSettings
from mushee.domain.entities import CanonicalScore, IngestionOutcome, IngestionStatus
from mushee.domain.exceptions import (
    DuplicateEntityException,
    FileTooLargeError,
    InvalidFileFormatError,
    StorageUnavailableError,
    ValidationException,
)
from mushee.domain.ports import ICollectionRepository, IScoreFileStorage, IScoreRepository
from mushee.domain.value_objects import ScoreId, UserId
from mushee.domain.value_objects.content_hash import compute_content_hash
from mushee.domain.value_objects.score_metadata import ScoreMetadata, read_score_metadata
from mushee.infrastructure.observability.logger_template import log_operation

logger = logging.getLogger(__name__)


@dataclass
class IngestScoreRequest:
    """An uploaded file on behalf of one user."""

    file_bytes: bytes
    filename: str
    user_id: UserId
    # None when the client didn't declare one
    content_type: str | None = None


class IngestScoreUseCase(UseCase[IngestScoreRequest, IngestionOutcome]):
    """Resolve an upload into a new canonical score or a link to an existing one."""

    def __init__(
        self,
        score_repository: IScoreRepository,
        collection_repository: ICollectionRepository,
        file_storage: IScoreFileStorage,
        settings: UploadSettings,
    ) -> None:
        self.score_repository = score_repository
        self.collection_repository = collection_repository
        self.file_storage = file_storage
        self.settings = settings

    def validate_upload(self, request: IngestScoreRequest) -> None:
        """Check extension, content type and size. Never touches the content.

        Raises:
            InvalidFileFormatError: Wrong extension or content type.
            FileTooLargeError: Bigger than the configured ceiling.
        """
        extension = PurePath(request.filename or "").suffix.lower()
        if extension not in self.settings.allowed_extensions:
            raise InvalidFileFormatError(
                "Only MusicXML files (.xml, .musicxml) are supported. "
                f"Got: {extension or 'no extension'}"
            )

        if request.content_type:
            # "text/xml; charset=utf-8" -> "text/xml"
            media_type = request.content_type.split(";", 1)[0].strip().lower()
            if media_type not in self.settings.allowed_content_types:
                raise InvalidFileFormatError(
                    f"Unsupported content type: {media_type}. Expected a MusicXML file."
                )

        size = len(request.file_bytes)
        # The ceiling is exclusive: a file must be strictly smaller
        if size >= self.settings.max_file_size_bytes:
            raise FileTooLargeError(size, self.settings.max_file_size_bytes)

    async def _hash_and_extract(self, data: bytes) -> tuple[str, ScoreMetadata]:
        # Both are CPU bound - run them on threads so the loop keeps serving other requests
        content_hash, metadata = await asyncio.gather(
            asyncio.to_thread(compute_content_hash, data),
            asyncio.to_thread(read_score_metadata, data, self.settings.metadata_max_length),
        )
        return content_hash, metadata

    async def _create_score(
        self,
        content_hash: str,
        metadata: ScoreMetadata,
        request: IngestScoreRequest,
    ) -> CanonicalScore | None:
        """Store file + record. Returns None when a concurrent upload created it first."""
        metadata = metadata.with_placeholders(
            self.settings.placeholder_title, self.settings.placeholder_composer
        )
        file_reference = await self.file_storage.save(content_hash, request.file_bytes)
        score = CanonicalScore(
            id=ScoreId.generate(),
            title=metadata.title,
            composer=metadata.composer,
            subtitle=metadata.subtitle,
            content_hash=content_hash,
            uploader_id=request.user_id,
            file_reference=file_reference,
        )
        try:
            await self.score_repository.add(score)
        except DuplicateEntityException:
            logger.info(
                "Lost insert race for content hash %s, linking the existing score",
                content_hash,
            )
            return None
        return score

    async def execute(self, request: IngestScoreRequest) -> IngestionOutcome:
        """Ingest one upload."""
        async with log_operation(
            logger,
            "ingest_score",
            expected_errors=(ValidationException,),
            user_id=str(request.user_id),
            upload_name=request.filename,
            size_bytes=len(request.file_bytes),
        ) as fields:
            self.validate_upload(request)
            content_hash, metadata = await self._hash_and_extract(request.file_bytes)

            status = IngestionStatus.LINKED_EXISTING
            score = await self.score_repository.get_by_hash(content_hash)
            if score is None:
                score = await self._create_score(content_hash, metadata, request)
                if score is not None:
                    status = IngestionStatus.CREATED
                else:
                    score = await self.score_repository.get_by_hash(content_hash)
                    if score is None:
                        # The winner's row must exist once our insert was rejected
                        raise StorageUnavailableError(
                            f"Score with hash {content_hash} vanished during ingestion"
                        )

            link, link_created = await self.collection_repository.add_link(
                request.user_id, score.id
            )

            fields.update(
                status=status.value,
                content_hash=content_hash,
                score_id=str(score.id),
                link_created=link_created,
            )

        return IngestionOutcome(
            status=status,
            score=score,
            linked_at=link.created_at,
            link_created=link_created,
        )

    async def ingest(
        self,
        file_bytes: bytes,
        filename: str,
        user_id: UserId,
        content_type: str | None = None,
    ) -> IngestionOutcome:
        """Convenience wrapper around execute()."""
        return await self.execute(
            IngestScoreRequest(
                file_bytes=file_bytes,
                filename=filename,
                user_id=user_id,
                content_type=content_type,
            )
        )
