"""API schemas for scores and the public catalog."""

from datetime import datetime

from pydantic import BaseModel, Field

from mushee.domain.entities import CanonicalScore, CatalogPage, IngestionOutcome


class PaginationResponse(BaseModel):
    """Paging info shared by catalog and library listings."""

    page: int
    limit: int
    total_items: int
    total_pages: int


class ScoreResponse(BaseModel):
    """A canonical score as shown to clients."""

    id: str
    title: str
    composer: str
    subtitle: str | None = None
    content_hash: str
    is_public_domain: bool
    created_at: datetime

    @classmethod
    def from_entity(cls, score: CanonicalScore) -> "ScoreResponse":
        return cls(
            id=str(score.id),
            title=score.title,
            composer=score.composer,
            subtitle=score.subtitle,
            content_hash=score.content_hash,
            is_public_domain=score.is_public_domain,
            created_at=score.created_at,
        )


class UploadScoreResponse(BaseModel):
    """Result of an upload: either a new score or a link to an existing one."""

    status: str = Field(..., description="'created' or 'linked_existing'")
    duplicate: bool = Field(..., description="True when the same file was already stored")
    already_in_library: bool = Field(
        ..., description="True when the uploader already had this score"
    )
    content_hash: str
    added_at: datetime
    score: ScoreResponse

    @classmethod
    def from_outcome(cls, outcome: IngestionOutcome) -> "UploadScoreResponse":
        return cls(
            status=outcome.status.value,
            duplicate=outcome.duplicate,
            already_in_library=not outcome.link_created,
            content_hash=outcome.content_hash,
            added_at=outcome.linked_at,
            score=ScoreResponse.from_entity(outcome.score),
        )


class CatalogResponse(BaseModel):
    """One page of the public catalog."""

    data: list[ScoreResponse]
    pagination: PaginationResponse

    @classmethod
    def from_page(cls, page: CatalogPage) -> "CatalogResponse":
        return cls(
            data=[ScoreResponse.from_entity(s) for s in page.items],
            pagination=PaginationResponse(
                page=page.page,
                limit=page.page_size,
                total_items=page.total_count,
                total_pages=page.total_pages,
            ),
        )
