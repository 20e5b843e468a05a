"""Domain entities."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import ClassVar

from mushee.domain.value_objects import FeedbackId, ScoreId, UserId


# Hey future me, CanonicalScore is THE one row per distinct file content! Two users uploading the
# same bytes share this record - that's the whole point of content_hash being unique. title and
# composer are NEVER empty here: the ingestion use case swaps in placeholders before we get built,
# and __post_init__ refuses anything else. uploader_id is None for seeded public-domain scores.
@dataclass
class CanonicalScore:
    """A deduplicated score, identified by the hash of its raw bytes."""

    id: ScoreId
    title: str
    composer: str
    content_hash: str
    subtitle: str | None = None
    uploader_id: UserId | None = None
    file_reference: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        """Validate score data."""
        if not self.title or not self.title.strip():
            raise ValueError("Score title cannot be empty")
        if not self.composer or not self.composer.strip():
            raise ValueError("Score composer cannot be empty")
        if not self.content_hash:
            raise ValueError("Score content hash cannot be empty")

    @property
    def is_public_domain(self) -> bool:
        """Seeded scores have no uploader and show up in everyone's catalog."""
        return self.uploader_id is None


# At most one link per (user, score). Deleting a link leaves the CanonicalScore alone!
@dataclass
class CollectionLink:
    """A score placed into a user's personal collection."""

    user_id: UserId
    score_id: ScoreId
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class IngestionStatus(str, Enum):
    """How an upload was resolved."""

    CREATED = "created"
    LINKED_EXISTING = "linked_existing"


@dataclass
class IngestionOutcome:
    """Result of ingesting one upload for one user.

    Duplicate uploads are a SUCCESS - duplicate=True just tells the UI to say "already in the
    library" instead of "uploaded". link_created is False when the user re-uploaded a file that
    was already in their own collection (idempotent re-ingest).
    """

    status: IngestionStatus
    score: CanonicalScore
    linked_at: datetime
    link_created: bool = True

    @property
    def duplicate(self) -> bool:
        return self.status == IngestionStatus.LINKED_EXISTING

    @property
    def content_hash(self) -> str:
        return self.score.content_hash


@dataclass
class CollectionItem:
    """A score as it appears in a user's collection listing."""

    score: CanonicalScore
    added_at: datetime

    @property
    def score_id(self) -> ScoreId:
        return self.score.id


@dataclass
class CollectionPage:
    """One page of a user's collection plus the total size of the collection."""

    items: list[CollectionItem]
    total_count: int
    page: int = 1
    page_size: int = 50

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total_count + self.page_size - 1) // self.page_size


@dataclass
class CatalogPage:
    """One page of the public-domain catalog."""

    items: list[CanonicalScore]
    total_count: int
    page: int = 1
    page_size: int = 50

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total_count + self.page_size - 1) // self.page_size


class SortOrder(str, Enum):
    """Sort direction for listings."""

    ASC = "asc"
    DESC = "desc"


class CollectionSortField(str, Enum):
    """Sortable columns of a user's collection."""

    TITLE = "title"
    COMPOSER = "composer"
    CREATED_AT = "created_at"
    ADDED_AT = "added_at"


class CatalogSortField(str, Enum):
    """Sortable columns of the public catalog (no added_at - nobody "added" these)."""

    TITLE = "title"
    COMPOSER = "composer"
    CREATED_AT = "created_at"


@dataclass(frozen=True)
class SongReference:
    """A {title, composer} pair sent to or returned by the recommendation API."""

    title: str
    composer: str

    def __post_init__(self) -> None:
        """Validate song reference."""
        if not self.title or not self.title.strip():
            raise ValueError("Song title cannot be empty")
        if not self.composer or not self.composer.strip():
            raise ValueError("Song composer cannot be empty")

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "composer": self.composer}


@dataclass
class RatedSuggestion:
    """A suggested song plus the user's thumbs up/down (None = unrated)."""

    song: SongReference
    user_rating: int | None = None

    ALLOWED_RATINGS: ClassVar[tuple[int | None, ...]] = (1, -1, None)

    def __post_init__(self) -> None:
        """Validate rating."""
        if self.user_rating not in self.ALLOWED_RATINGS:
            raise ValueError("Rating must be 1 (thumbs up), -1 (thumbs down) or null")


# Listen up - one SuggestionFeedback row per suggestion SET, not per suggestion! The user rates
# entries inside the set and rating_score is the plain sum of those ratings (+1/-1). We keep
# rating_score as a stored number because analytics wants it without unpacking JSON.
@dataclass
class SuggestionFeedback:
    """A suggestion set shown to a user and the ratings they gave it."""

    id: FeedbackId
    user_id: UserId
    input_songs: list[SongReference]
    suggestions: list[RatedSuggestion]
    rating_score: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def apply_ratings(self, ratings: list[RatedSuggestion]) -> None:
        """Replace the ratings of this set.

        The rated list must match the stored suggestions one-to-one (same songs, same order),
        otherwise somebody is trying to rate songs we never suggested.
        """
        if len(ratings) != len(self.suggestions):
            raise ValueError("Rated suggestions do not match the original suggestion set")
        for stored, rated in zip(self.suggestions, ratings, strict=True):
            if stored.song != rated.song:
                raise ValueError("Rated suggestions do not match the original suggestion set")

        self.suggestions = [
            RatedSuggestion(song=stored.song, user_rating=rated.user_rating)
            for stored, rated in zip(self.suggestions, ratings, strict=True)
        ]
        self.rating_score = sum(s.user_rating or 0 for s in self.suggestions)
        self.updated_at = datetime.now(UTC)


__all__ = [
    "CanonicalScore",
    "CatalogPage",
    "CatalogSortField",
    "CollectionItem",
    "CollectionLink",
    "CollectionPage",
    "CollectionSortField",
    "IngestionOutcome",
    "IngestionStatus",
    "RatedSuggestion",
    "SongReference",
    "SortOrder",
    "SuggestionFeedback",
]
