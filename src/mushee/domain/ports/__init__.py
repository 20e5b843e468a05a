"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod

from mushee.domain.entities import (
    CanonicalScore,
    CatalogPage,
    CatalogSortField,
    CollectionLink,
    CollectionPage,
    CollectionSortField,
    SongReference,
    SortOrder,
    SuggestionFeedback,
)
from mushee.domain.value_objects import FeedbackId, ScoreId, UserId


# Hey future me, IScoreRepository is the canonical record store. The important bit is add():
# it must NOT check-then-insert. Implementations insert and let the UNIQUE(content_hash)
# constraint decide - when another writer got there first, raise DuplicateEntityException and
# let the caller re-fetch by hash. That constraint is our only concurrency control, no locks!
class IScoreRepository(ABC):
    """Repository interface for CanonicalScore entities."""

    @abstractmethod
    async def add(self, score: CanonicalScore) -> None:
        """Insert a new score.

        Raises:
            DuplicateEntityException: If a score with the same content hash already exists.
        """
        pass

    @abstractmethod
    async def get_by_id(self, score_id: ScoreId) -> CanonicalScore | None:
        """Get a score by ID."""
        pass

    @abstractmethod
    async def get_by_hash(self, content_hash: str) -> CanonicalScore | None:
        """Get a score by the hash of its raw bytes."""
        pass

    @abstractmethod
    async def delete(self, score_id: ScoreId) -> None:
        """Delete a score (administrative only, links must be gone first)."""
        pass

    @abstractmethod
    async def list_catalog(
        self,
        page: int = 1,
        page_size: int = 50,
        sort: CatalogSortField = CatalogSortField.TITLE,
        order: SortOrder = SortOrder.ASC,
        search: str | None = None,
    ) -> CatalogPage:
        """List public-domain scores (no uploader), optionally filtered by title/composer."""
        pass


class ICollectionRepository(ABC):
    """Repository interface for user collection links."""

    @abstractmethod
    async def get_link(self, user_id: UserId, score_id: ScoreId) -> CollectionLink | None:
        """Get the link between a user and a score, if any."""
        pass

    @abstractmethod
    async def add_link(
        self, user_id: UserId, score_id: ScoreId
    ) -> tuple[CollectionLink, bool]:
        """Link a score into a user's collection.

        Re-adding an existing pair is a no-op that returns the existing link.

        Returns:
            (link, created) - created is False when the pair was already linked.
        """
        pass

    @abstractmethod
    async def remove_link(self, user_id: UserId, score_id: ScoreId) -> bool:
        """Remove a link. Returns False if there was nothing to remove."""
        pass

    @abstractmethod
    async def list_by_user(
        self,
        user_id: UserId,
        page: int = 1,
        page_size: int = 50,
        sort: CollectionSortField = CollectionSortField.ADDED_AT,
        order: SortOrder = SortOrder.DESC,
        search: str | None = None,
    ) -> CollectionPage:
        """List one page of a user's collection plus its total size."""
        pass


class IScoreFileStorage(ABC):
    """Storage for raw uploaded score files, keyed by content hash."""

    @abstractmethod
    async def save(self, content_hash: str, data: bytes) -> str:
        """Store the bytes under their hash and return a storage reference.

        Saving the same hash twice must be harmless (same bytes, same place).
        """
        pass

    @abstractmethod
    async def read(self, reference: str) -> bytes:
        """Read back a stored file."""
        pass


class IRecommendationClient(ABC):
    """Opaque external service that suggests songs based on a list of songs."""

    @abstractmethod
    async def suggest(self, songs: list[SongReference], count: int) -> list[SongReference]:
        """Return `count` suggested songs.

        Raises:
            ExternalServiceError: On any HTTP, decoding or shape failure.
        """
        pass


class ISuggestionFeedbackRepository(ABC):
    """Repository interface for suggestion feedback records."""

    @abstractmethod
    async def add(self, feedback: SuggestionFeedback) -> None:
        """Persist a new suggestion set."""
        pass

    @abstractmethod
    async def get_by_id(self, feedback_id: FeedbackId) -> SuggestionFeedback | None:
        """Get a feedback record by ID."""
        pass

    @abstractmethod
    async def update(self, feedback: SuggestionFeedback) -> None:
        """Persist new ratings for an existing suggestion set."""
        pass


__all__ = [
    "ICollectionRepository",
    "IRecommendationClient",
    "IScoreFileStorage",
    "IScoreRepository",
    "ISuggestionFeedbackRepository",
]
