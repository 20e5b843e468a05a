"""Service for browsing the catalog and managing a user's collection."""

import logging

from mushee.config.settings import CollectionSettings
from mushee.domain.entities import (
    CanonicalScore,
    CatalogPage,
    CatalogSortField,
    CollectionItem,
    CollectionPage,
    CollectionSortField,
    SortOrder,
)
from mushee.domain.exceptions import EntityNotFoundException, ValidationException
from mushee.domain.ports import ICollectionRepository, IScoreFileStorage, IScoreRepository
from mushee.domain.value_objects import ScoreId, UserId

logger = logging.getLogger(__name__)


class CollectionService:
    """Catalog reads plus add/remove on personal collections.

    Hey future me - removing from a collection only deletes the LINK. The canonical score stays,
    other users may still have it and the next upload of the same bytes must find it by hash.
    """

    def __init__(
        self,
        score_repository: IScoreRepository,
        collection_repository: ICollectionRepository,
        settings: CollectionSettings,
        file_storage: IScoreFileStorage | None = None,
    ) -> None:
        self.score_repository = score_repository
        self.collection_repository = collection_repository
        self.settings = settings
        self.file_storage = file_storage

    def _validate_paging(self, page: int, limit: int | None) -> int:
        if page < 1:
            raise ValidationException("Page must be 1 or greater")
        if limit is None:
            return self.settings.page_size
        if limit < 1 or limit > self.settings.max_page_size:
            raise ValidationException(
                f"Limit must be between 1 and {self.settings.max_page_size}"
            )
        return limit

    async def list_collection(
        self,
        user_id: UserId,
        page: int = 1,
        limit: int | None = None,
        sort: CollectionSortField = CollectionSortField.ADDED_AT,
        order: SortOrder = SortOrder.DESC,
        search: str | None = None,
    ) -> CollectionPage:
        """Get one page of a user's collection."""
        page_size = self._validate_paging(page, limit)
        return await self.collection_repository.list_by_user(
            user_id, page=page, page_size=page_size, sort=sort, order=order, search=search
        )

    async def list_catalog(
        self,
        page: int = 1,
        limit: int | None = None,
        sort: CatalogSortField = CatalogSortField.TITLE,
        order: SortOrder = SortOrder.ASC,
        search: str | None = None,
    ) -> CatalogPage:
        """Get one page of the public-domain catalog."""
        page_size = self._validate_paging(page, limit)
        return await self.score_repository.list_catalog(
            page=page, page_size=page_size, sort=sort, order=order, search=search
        )

    async def get_score(self, score_id: ScoreId) -> CanonicalScore:
        """Get a score or raise EntityNotFoundException."""
        score = await self.score_repository.get_by_id(score_id)
        if score is None:
            raise EntityNotFoundException("Score", score_id.value)
        return score

    async def get_score_file(self, score_id: ScoreId) -> tuple[CanonicalScore, bytes]:
        """Get a score together with its raw MusicXML bytes."""
        if self.file_storage is None:
            raise ValidationException("Score file storage is not available")
        score = await self.get_score(score_id)
        if not score.file_reference:
            # Seeded scores imported without their file
            raise EntityNotFoundException("ScoreFile", score_id.value)
        return score, await self.file_storage.read(score.file_reference)

    async def add_to_collection(
        self, user_id: UserId, score_id: ScoreId
    ) -> tuple[CollectionItem, bool]:
        """Add an existing score to a collection. Adding twice is a no-op.

        Returns:
            (item, created) - created is False when the score was already in the collection.
        """
        score = await self.get_score(score_id)
        link, created = await self.collection_repository.add_link(user_id, score_id)
        if created:
            logger.info("Added score %s to collection of user %s", score_id, user_id)
        return CollectionItem(score=score, added_at=link.created_at), created

    async def remove_from_collection(self, user_id: UserId, score_id: ScoreId) -> None:
        """Remove a score from a collection.

        Raises:
            EntityNotFoundException: If the score was not in the collection.
        """
        removed = await self.collection_repository.remove_link(user_id, score_id)
        if not removed:
            raise EntityNotFoundException("CollectionLink", f"{user_id}/{score_id}")
        logger.info("Removed score %s from collection of user %s", score_id, user_id)
