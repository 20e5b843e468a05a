"""API schemas for a user's collection."""

from datetime import datetime

from pydantic import BaseModel, Field

from mushee.domain.entities import CollectionItem, CollectionPage

from .scores import PaginationResponse, ScoreResponse


class LibraryItemResponse(BaseModel):
    """A score in the user's collection."""

    score: ScoreResponse
    added_at: datetime

    @classmethod
    def from_entity(cls, item: CollectionItem) -> "LibraryItemResponse":
        return cls(score=ScoreResponse.from_entity(item.score), added_at=item.added_at)


class LibraryResponse(BaseModel):
    """One page of the user's collection."""

    data: list[LibraryItemResponse]
    pagination: PaginationResponse

    @classmethod
    def from_page(cls, page: CollectionPage) -> "LibraryResponse":
        return cls(
            data=[LibraryItemResponse.from_entity(i) for i in page.items],
            pagination=PaginationResponse(
                page=page.page,
                limit=page.page_size,
                total_items=page.total_count,
                total_pages=page.total_pages,
            ),
        )


class AddToLibraryRequest(BaseModel):
    """Add an existing catalog score to the collection."""

    score_id: str = Field(..., description="ID of the score to add")
