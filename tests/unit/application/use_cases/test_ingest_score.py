"""Tests for the score ingestion use case."""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime

import pytest
from pytest_mock import MockerFixture

from mushee.application.use_cases.ingest_score import (
    IngestScoreRequest,
    IngestScoreUseCase,
)
from mushee.config import UploadSettings
from mushee.domain.entities import (
    CanonicalScore,
    CatalogPage,
    CollectionLink,
    CollectionPage,
    IngestionStatus,
)
from mushee.domain.exceptions import (
    DuplicateEntityException,
    FileTooLargeError,
    InvalidDocumentError,
    InvalidFileFormatError,
    StorageUnavailableError,
)
from mushee.domain.ports import (
    ICollectionRepository,
    IScoreFileStorage,
    IScoreRepository,
)
from mushee.domain.value_objects import ScoreId, UserId
from mushee.domain.value_objects.content_hash import compute_content_hash

ALICE = UserId("alice")
BOB = UserId("bob")


class InMemoryScoreRepository(IScoreRepository):
    """Score store enforcing the unique content hash like the real table does."""

    def __init__(self) -> None:
        self.by_hash: dict[str, CanonicalScore] = {}
        self.add_calls = 0

    async def add(self, score: CanonicalScore) -> None:
        self.add_calls += 1
        await asyncio.sleep(0)
        if score.content_hash in self.by_hash:
            raise DuplicateEntityException("Score", score.content_hash)
        self.by_hash[score.content_hash] = score

    async def get_by_id(self, score_id: ScoreId) -> CanonicalScore | None:
        return next((s for s in self.by_hash.values() if s.id == score_id), None)

    async def get_by_hash(self, content_hash: str) -> CanonicalScore | None:
        # Yield so concurrent ingests interleave between lookup and insert
        await asyncio.sleep(0)
        return self.by_hash.get(content_hash)

    async def delete(self, score_id: ScoreId) -> None:
        raise NotImplementedError

    async def list_catalog(self, *args: object, **kwargs: object) -> CatalogPage:
        raise NotImplementedError


class InMemoryCollectionRepository(ICollectionRepository):
    """Link store keyed by (user, score)."""

    def __init__(self) -> None:
        self.links: dict[tuple[str, ScoreId], CollectionLink] = {}

    async def get_link(self, user_id: UserId, score_id: ScoreId) -> CollectionLink | None:
        return self.links.get((str(user_id), score_id))

    async def add_link(
        self, user_id: UserId, score_id: ScoreId
    ) -> tuple[CollectionLink, bool]:
        key = (str(user_id), score_id)
        if key in self.links:
            return self.links[key], False
        link = CollectionLink(user_id=user_id, score_id=score_id, created_at=datetime.now(UTC))
        self.links[key] = link
        return link, True

    async def remove_link(self, user_id: UserId, score_id: ScoreId) -> bool:
        return self.links.pop((str(user_id), score_id), None) is not None

    async def list_by_user(self, *args: object, **kwargs: object) -> CollectionPage:
        raise NotImplementedError


class InMemoryFileStorage(IScoreFileStorage):
    """File store that can be told to fail."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.fail = False

    async def save(self, content_hash: str, data: bytes) -> str:
        if self.fail:
            raise StorageUnavailableError("Could not store score file: disk full")
        self.files[content_hash] = data
        return f"{content_hash[:2]}/{content_hash}.musicxml"

    async def read(self, reference: str) -> bytes:
        raise NotImplementedError


@pytest.fixture
def scores() -> InMemoryScoreRepository:
    return InMemoryScoreRepository()


@pytest.fixture
def links() -> InMemoryCollectionRepository:
    return InMemoryCollectionRepository()


@pytest.fixture
def storage() -> InMemoryFileStorage:
    return InMemoryFileStorage()


@pytest.fixture
def use_case(
    scores: InMemoryScoreRepository,
    links: InMemoryCollectionRepository,
    storage: InMemoryFileStorage,
) -> IngestScoreUseCase:
    return IngestScoreUseCase(
        score_repository=scores,
        collection_repository=links,
        file_storage=storage,
        settings=UploadSettings(max_file_size_bytes=4096),
    )


class TestIngestNewScore:
    """Test ingesting bytes nobody uploaded before."""

    async def test_creates_score_and_link(
        self,
        use_case: IngestScoreUseCase,
        scores: InMemoryScoreRepository,
        links: InMemoryCollectionRepository,
        storage: InMemoryFileStorage,
        score_xml: Callable[..., bytes],
    ) -> None:
        data = score_xml(title="Clair de Lune", composer="Claude Debussy")

        outcome = await use_case.ingest(data, "clair.musicxml", ALICE)

        assert outcome.status == IngestionStatus.CREATED
        assert not outcome.duplicate
        assert outcome.link_created
        assert outcome.content_hash == compute_content_hash(data)
        assert outcome.score.title == "Clair de Lune"
        assert outcome.score.composer == "Claude Debussy"
        assert outcome.score.uploader_id == ALICE
        assert outcome.score.file_reference is not None
        assert storage.files[outcome.content_hash] == data
        assert await links.get_link(ALICE, outcome.score.id) is not None
        assert len(scores.by_hash) == 1

    async def test_missing_metadata_gets_placeholders(
        self, use_case: IngestScoreUseCase, score_xml: Callable[..., bytes]
    ) -> None:
        outcome = await use_case.ingest(
            score_xml(title=None, composer=None), "blank.xml", ALICE
        )

        assert outcome.score.title == "Untitled"
        assert outcome.score.composer == "Unknown Composer"

    async def test_subtitle_is_stored(
        self, use_case: IngestScoreUseCase, score_xml: Callable[..., bytes]
    ) -> None:
        outcome = await use_case.ingest(
            score_xml(movement_number="I", movement_title="Allegro"), "sonata.xml", ALICE
        )
        assert outcome.score.subtitle == "I Allegro"


class TestIngestDuplicate:
    """Test ingesting bytes that are already stored."""

    async def test_second_user_links_existing_score(
        self,
        use_case: IngestScoreUseCase,
        scores: InMemoryScoreRepository,
        links: InMemoryCollectionRepository,
        score_xml: Callable[..., bytes],
    ) -> None:
        data = score_xml()
        first = await use_case.ingest(data, "a.xml", ALICE)

        second = await use_case.ingest(data, "b.xml", BOB)

        assert second.status == IngestionStatus.LINKED_EXISTING
        assert second.duplicate
        assert second.link_created
        assert second.score.id == first.score.id
        assert len(scores.by_hash) == 1
        assert len(links.links) == 2

    async def test_first_seen_metadata_wins(
        self, use_case: IngestScoreUseCase, score_xml: Callable[..., bytes]
    ) -> None:
        """The existing record is reused untouched, whoever uploads it again."""
        data = score_xml(title="Original Title")
        await use_case.ingest(data, "a.xml", ALICE)

        outcome = await use_case.ingest(data, "renamed.xml", BOB)

        assert outcome.score.title == "Original Title"
        assert outcome.score.uploader_id == ALICE

    async def test_reupload_by_same_user_is_idempotent(
        self,
        use_case: IngestScoreUseCase,
        links: InMemoryCollectionRepository,
        score_xml: Callable[..., bytes],
    ) -> None:
        data = score_xml()
        first = await use_case.ingest(data, "a.xml", ALICE)

        again = await use_case.ingest(data, "a.xml", ALICE)

        assert again.duplicate
        assert not again.link_created
        assert again.linked_at == first.linked_at
        assert len(links.links) == 1

    async def test_one_byte_difference_is_a_new_score(
        self,
        use_case: IngestScoreUseCase,
        scores: InMemoryScoreRepository,
        score_xml: Callable[..., bytes],
    ) -> None:
        await use_case.ingest(score_xml(title="Etude"), "a.xml", ALICE)
        outcome = await use_case.ingest(score_xml(title="Etude "), "b.xml", ALICE)

        assert outcome.status == IngestionStatus.CREATED
        assert len(scores.by_hash) == 2

    async def test_concurrent_uploads_create_one_score(
        self,
        use_case: IngestScoreUseCase,
        scores: InMemoryScoreRepository,
        links: InMemoryCollectionRepository,
        score_xml: Callable[..., bytes],
    ) -> None:
        """Both see "not found", one insert wins, the loser links the winner's record."""
        data = score_xml(title="Race")

        first, second = await asyncio.gather(
            use_case.ingest(data, "a.xml", ALICE),
            use_case.ingest(data, "b.xml", BOB),
        )

        assert len(scores.by_hash) == 1
        assert first.score.id == second.score.id
        assert sorted([first.status, second.status]) == sorted(
            [IngestionStatus.CREATED, IngestionStatus.LINKED_EXISTING]
        )
        assert len(links.links) == 2

    async def test_concurrent_uploads_by_same_user_link_once(
        self,
        use_case: IngestScoreUseCase,
        scores: InMemoryScoreRepository,
        links: InMemoryCollectionRepository,
        score_xml: Callable[..., bytes],
    ) -> None:
        data = score_xml(title="Double Click")

        first, second = await asyncio.gather(
            use_case.ingest(data, "a.xml", ALICE),
            use_case.ingest(data, "a.xml", ALICE),
        )

        assert len(scores.by_hash) == 1
        assert first.score.id == second.score.id
        assert len(links.links) == 1
        assert [first.link_created, second.link_created].count(True) == 1


class TestIngestValidation:
    """Test rejections. Nothing may be stored when validation fails."""

    @pytest.mark.parametrize("filename", ["score.pdf", "score.mxl", "score", ""])
    async def test_rejects_wrong_extension(
        self,
        use_case: IngestScoreUseCase,
        storage: InMemoryFileStorage,
        score_xml: Callable[..., bytes],
        filename: str,
    ) -> None:
        with pytest.raises(InvalidFileFormatError, match="Only MusicXML files"):
            await use_case.ingest(score_xml(), filename, ALICE)
        assert storage.files == {}

    async def test_extension_check_is_case_insensitive(
        self, use_case: IngestScoreUseCase, score_xml: Callable[..., bytes]
    ) -> None:
        outcome = await use_case.ingest(score_xml(), "SCORE.MusicXML", ALICE)
        assert outcome.status == IngestionStatus.CREATED

    async def test_rejects_wrong_content_type(
        self, use_case: IngestScoreUseCase, score_xml: Callable[..., bytes]
    ) -> None:
        with pytest.raises(InvalidFileFormatError, match="Unsupported content type"):
            await use_case.ingest(score_xml(), "score.xml", ALICE, content_type="image/png")

    async def test_accepts_content_type_with_parameters(
        self, use_case: IngestScoreUseCase, score_xml: Callable[..., bytes]
    ) -> None:
        outcome = await use_case.ingest(
            score_xml(), "score.xml", ALICE, content_type="text/xml; charset=utf-8"
        )
        assert outcome.status == IngestionStatus.CREATED

    async def test_rejects_oversized_file(
        self,
        use_case: IngestScoreUseCase,
        storage: InMemoryFileStorage,
        score_xml: Callable[..., bytes],
    ) -> None:
        data = score_xml(extra="<!--" + "x" * 5000 + "-->")
        with pytest.raises(FileTooLargeError) as exc_info:
            await use_case.ingest(data, "big.xml", ALICE)
        assert exc_info.value.limit == 4096
        assert storage.files == {}

    async def test_size_ceiling_is_exclusive(
        self, use_case: IngestScoreUseCase, score_xml: Callable[..., bytes]
    ) -> None:
        def sized(size: int) -> bytes:
            padding = size - len(score_xml()) - len("<!---->")
            return score_xml(extra="<!--" + "x" * padding + "-->")

        assert len(sized(4096)) == 4096
        with pytest.raises(FileTooLargeError):
            await use_case.ingest(sized(4096), "edge.xml", ALICE)

        outcome = await use_case.ingest(sized(4095), "edge.xml", ALICE)
        assert outcome.status == IngestionStatus.CREATED

    async def test_rejects_corrupt_document_before_storing(
        self,
        use_case: IngestScoreUseCase,
        scores: InMemoryScoreRepository,
        storage: InMemoryFileStorage,
        links: InMemoryCollectionRepository,
    ) -> None:
        with pytest.raises(InvalidDocumentError):
            await use_case.ingest(b"<score-partwise><unclosed>", "broken.xml", ALICE)

        assert scores.add_calls == 0
        assert storage.files == {}
        assert links.links == {}


class TestIngestStorageFailures:
    """Test that storage outages surface unchanged."""

    async def test_file_storage_failure_surfaces(
        self,
        use_case: IngestScoreUseCase,
        scores: InMemoryScoreRepository,
        storage: InMemoryFileStorage,
        score_xml: Callable[..., bytes],
    ) -> None:
        storage.fail = True

        with pytest.raises(StorageUnavailableError):
            await use_case.ingest(score_xml(), "score.xml", ALICE)

        assert scores.by_hash == {}

    async def test_vanished_winner_is_a_storage_error(
        self,
        use_case: IngestScoreUseCase,
        scores: InMemoryScoreRepository,
        score_xml: Callable[..., bytes],
        mocker: MockerFixture,
    ) -> None:
        """Insert rejected but the row can't be found either: report, don't guess."""
        mocker.patch.object(
            scores, "add", side_effect=DuplicateEntityException("Score", "x")
        )

        with pytest.raises(StorageUnavailableError, match="vanished"):
            await use_case.ingest(score_xml(), "score.xml", ALICE)
