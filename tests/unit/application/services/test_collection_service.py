"""Tests for the collection service."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from pytest_mock import MockerFixture

from mushee.application.services.collection_service import CollectionService
from mushee.config import CollectionSettings
from mushee.domain.entities import (
    CanonicalScore,
    CollectionLink,
    CollectionSortField,
    SortOrder,
)
from mushee.domain.exceptions import EntityNotFoundException, ValidationException
from mushee.domain.value_objects import ScoreId, UserId

USER = UserId("alice")


def _score(file_reference: str | None = "ab/abc.musicxml") -> CanonicalScore:
    return CanonicalScore(
        id=ScoreId.generate(),
        title="Prelude in C",
        composer="Johann Sebastian Bach",
        content_hash="ab" + "0" * 30,
        file_reference=file_reference,
    )


@pytest.fixture
def score_repository(mocker: MockerFixture) -> AsyncMock:
    return mocker.AsyncMock()


@pytest.fixture
def collection_repository(mocker: MockerFixture) -> AsyncMock:
    return mocker.AsyncMock()


@pytest.fixture
def file_storage(mocker: MockerFixture) -> AsyncMock:
    return mocker.AsyncMock()


@pytest.fixture
def service(
    score_repository: AsyncMock,
    collection_repository: AsyncMock,
    file_storage: AsyncMock,
) -> CollectionService:
    return CollectionService(
        score_repository,
        collection_repository,
        CollectionSettings(page_size=50, max_page_size=100),
        file_storage=file_storage,
    )


class TestPaging:
    """Test page/limit validation."""

    async def test_default_limit(
        self, service: CollectionService, collection_repository: AsyncMock
    ) -> None:
        await service.list_collection(USER)

        collection_repository.list_by_user.assert_awaited_once_with(
            USER,
            page=1,
            page_size=50,
            sort=CollectionSortField.ADDED_AT,
            order=SortOrder.DESC,
            search=None,
        )

    @pytest.mark.parametrize(("page", "limit"), [(0, 10), (1, 0), (1, 101)])
    async def test_rejects_out_of_range(
        self, service: CollectionService, page: int, limit: int
    ) -> None:
        with pytest.raises(ValidationException):
            await service.list_catalog(page=page, limit=limit)


class TestScores:
    """Test single score lookups."""

    async def test_missing_score(
        self, service: CollectionService, score_repository: AsyncMock
    ) -> None:
        score_repository.get_by_id.return_value = None
        with pytest.raises(EntityNotFoundException):
            await service.get_score(ScoreId.generate())

    async def test_score_file(
        self,
        service: CollectionService,
        score_repository: AsyncMock,
        file_storage: AsyncMock,
    ) -> None:
        score = _score()
        score_repository.get_by_id.return_value = score
        file_storage.read.return_value = b"<score-partwise/>"

        found, data = await service.get_score_file(score.id)

        assert found is score
        assert data == b"<score-partwise/>"
        file_storage.read.assert_awaited_once_with("ab/abc.musicxml")

    async def test_score_without_file(
        self, service: CollectionService, score_repository: AsyncMock
    ) -> None:
        score_repository.get_by_id.return_value = _score(file_reference=None)
        with pytest.raises(EntityNotFoundException):
            await service.get_score_file(ScoreId.generate())


class TestCollectionMutations:
    """Test add/remove on a collection."""

    async def test_add_existing_score(
        self,
        service: CollectionService,
        score_repository: AsyncMock,
        collection_repository: AsyncMock,
    ) -> None:
        score = _score()
        linked_at = datetime(2024, 5, 1, tzinfo=UTC)
        score_repository.get_by_id.return_value = score
        collection_repository.add_link.return_value = (
            CollectionLink(USER, score.id, linked_at),
            True,
        )

        item, created = await service.add_to_collection(USER, score.id)

        assert created
        assert item.score is score
        assert item.added_at == linked_at

    async def test_add_unknown_score(
        self,
        service: CollectionService,
        score_repository: AsyncMock,
        collection_repository: AsyncMock,
    ) -> None:
        score_repository.get_by_id.return_value = None
        with pytest.raises(EntityNotFoundException):
            await service.add_to_collection(USER, ScoreId.generate())
        collection_repository.add_link.assert_not_awaited()

    async def test_remove_only_touches_the_link(
        self,
        service: CollectionService,
        score_repository: AsyncMock,
        collection_repository: AsyncMock,
    ) -> None:
        collection_repository.remove_link.return_value = True
        score_id = ScoreId.generate()

        await service.remove_from_collection(USER, score_id)

        collection_repository.remove_link.assert_awaited_once_with(USER, score_id)
        score_repository.delete.assert_not_awaited()

    async def test_remove_missing_link(
        self, service: CollectionService, collection_repository: AsyncMock
    ) -> None:
        collection_repository.remove_link.return_value = False
        with pytest.raises(EntityNotFoundException):
            await service.remove_from_collection(USER, ScoreId.generate())
