"""Repository implementations for domain entities."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import Select, delete, func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mushee.domain.entities import (
    CanonicalScore,
    CatalogPage,
    CatalogSortField,
    CollectionItem,
    CollectionLink,
    CollectionPage,
    CollectionSortField,
    RatedSuggestion,
    SongReference,
    SortOrder,
    SuggestionFeedback,
)
from mushee.domain.exceptions import (
    DuplicateEntityException,
    EntityNotFoundException,
    ValidationException,
)
from mushee.domain.ports import (
    ICollectionRepository,
    IScoreRepository,
    ISuggestionFeedbackRepository,
)
from mushee.domain.value_objects import FeedbackId, ScoreId, UserId

from .errors import translate_storage_errors
from .models import (
    CollectionLinkModel,
    ScoreModel,
    SuggestionFeedbackModel,
    ensure_utc_aware,
    utc_now,
)

logger = logging.getLogger(__name__)


# Hey future me - "INSERT ... ON CONFLICT DO NOTHING" is spelled differently per dialect, and
# SQLAlchemy only exposes it through the dialect-specific insert() constructs. Returns None for
# anything that isn't SQLite or PostgreSQL; callers then fall back to a SAVEPOINT + IntegrityError.
def _conflict_ignoring_insert(session: AsyncSession, model: type[Any]) -> Any | None:
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite_insert(model)
    if dialect == "postgresql":
        return pg_insert(model)
    return None


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _search_filter(search: str | None) -> Any | None:
    """Case-insensitive substring match on title OR composer."""
    if not search or not search.strip():
        return None
    pattern = f"%{_escape_like(search.strip())}%"
    return or_(
        ScoreModel.title.ilike(pattern, escape="\\"),
        ScoreModel.composer.ilike(pattern, escape="\\"),
    )


def _score_to_entity(model: ScoreModel) -> CanonicalScore:
    return CanonicalScore(
        id=ScoreId.from_string(model.id),
        title=model.title,
        composer=model.composer,
        content_hash=model.content_hash,
        subtitle=model.subtitle,
        uploader_id=UserId(model.uploader_id) if model.uploader_id else None,
        file_reference=model.file_reference,
        created_at=ensure_utc_aware(model.created_at),
    )


class ScoreRepository(IScoreRepository):
    """SQLAlchemy implementation of the canonical score store."""

    # Same contract as every repo here: the session is injected and NOT committed by us.
    # session_scope() (or the request dependency) owns the transaction.
    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    # Listen up, this is the "insert, on conflict re-fetch" half that lives in the store. We do
    # NOT look first and insert second - two uploads of the same new file would both see
    # "not found" and both insert. Instead the INSERT itself asks the database to skip rows that
    # collide on content_hash. RETURNING gives us a row only when we actually inserted, so an
    # empty result means another writer won and we raise DuplicateEntityException. The use case
    # catches that and re-fetches by hash. Nothing is left half-done in the session either way.
    @translate_storage_errors
    async def add(self, score: CanonicalScore) -> None:
        """Insert a new score, raising DuplicateEntityException on a content hash collision."""
        values = {
            "id": str(score.id.value),
            "title": score.title,
            "composer": score.composer,
            "subtitle": score.subtitle,
            "content_hash": score.content_hash,
            "uploader_id": str(score.uploader_id) if score.uploader_id else None,
            "file_reference": score.file_reference,
            "created_at": score.created_at,
        }

        insert_stmt = _conflict_ignoring_insert(self.session, ScoreModel)
        if insert_stmt is not None:
            stmt = (
                insert_stmt.values(**values)
                .on_conflict_do_nothing(index_elements=[ScoreModel.content_hash])
                .returning(ScoreModel.id)
            )
            result = await self.session.execute(stmt)
            if result.scalar_one_or_none() is None:
                logger.info(
                    "Score insert skipped, content hash %s already stored",
                    score.content_hash,
                )
                raise DuplicateEntityException("Score", score.content_hash)
            return

        try:
            async with self.session.begin_nested():
                self.session.add(ScoreModel(**values))
        except IntegrityError as e:
            raise DuplicateEntityException("Score", score.content_hash) from e

    @translate_storage_errors
    async def get_by_id(self, score_id: ScoreId) -> CanonicalScore | None:
        """Get a score by ID."""
        stmt = select(ScoreModel).where(ScoreModel.id == str(score_id.value))
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return _score_to_entity(model) if model else None

    @translate_storage_errors
    async def get_by_hash(self, content_hash: str) -> CanonicalScore | None:
        """Get a score by content hash."""
        stmt = select(ScoreModel).where(ScoreModel.content_hash == content_hash)
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return _score_to_entity(model) if model else None

    # Administrative only. The FK on collection_links is RESTRICT, so the database refuses while
    # anybody still has the score in their collection - we turn that into a validation error.
    @translate_storage_errors
    async def delete(self, score_id: ScoreId) -> None:
        """Delete a score that no collection references anymore."""
        stmt = delete(ScoreModel).where(ScoreModel.id == str(score_id.value))
        try:
            result = await self.session.execute(stmt)
        except IntegrityError as e:
            raise ValidationException(
                f"Score {score_id} is still linked to at least one collection"
            ) from e
        if result.rowcount == 0:  # type: ignore[attr-defined]
            raise EntityNotFoundException("Score", score_id.value)

    @translate_storage_errors
    async def list_catalog(
        self,
        page: int = 1,
        page_size: int = 50,
        sort: CatalogSortField = CatalogSortField.TITLE,
        order: SortOrder = SortOrder.ASC,
        search: str | None = None,
    ) -> CatalogPage:
        """List public-domain scores with pagination, sorting and search."""
        conditions: list[Any] = [ScoreModel.uploader_id.is_(None)]
        search_clause = _search_filter(search)
        if search_clause is not None:
            conditions.append(search_clause)

        count_stmt = select(func.count()).select_from(ScoreModel).where(*conditions)
        total = (await self.session.execute(count_stmt)).scalar_one()

        sort_column = {
            CatalogSortField.TITLE: ScoreModel.title,
            CatalogSortField.COMPOSER: ScoreModel.composer,
            CatalogSortField.CREATED_AT: ScoreModel.created_at,
        }[sort]
        ordered = sort_column.asc() if order == SortOrder.ASC else sort_column.desc()

        stmt = (
            select(ScoreModel)
            .where(*conditions)
            .order_by(ordered, ScoreModel.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.session.execute(stmt)
        return CatalogPage(
            items=[_score_to_entity(m) for m in result.scalars().all()],
            total_count=total,
            page=page,
            page_size=page_size,
        )


class CollectionRepository(ICollectionRepository):
    """SQLAlchemy implementation of the user collection link store."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    @translate_storage_errors
    async def get_link(self, user_id: UserId, score_id: ScoreId) -> CollectionLink | None:
        """Get the link for a (user, score) pair."""
        stmt = select(CollectionLinkModel).where(
            CollectionLinkModel.user_id == str(user_id),
            CollectionLinkModel.score_id == str(score_id.value),
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        if not model:
            return None
        return CollectionLink(
            user_id=UserId(model.user_id),
            score_id=ScoreId.from_string(model.score_id),
            created_at=ensure_utc_aware(model.created_at),
        )

    # Same trick as ScoreRepository.add: the composite primary key decides, not a prior SELECT.
    # Re-adding is a no-op, so the "lost" case just reads back the existing link and reports
    # created=False. A missing score trips the foreign key -> EntityNotFoundException.
    @translate_storage_errors
    async def add_link(
        self, user_id: UserId, score_id: ScoreId
    ) -> tuple[CollectionLink, bool]:
        """Link a score to a user's collection (idempotent)."""
        linked_at = utc_now()
        values = {
            "user_id": str(user_id),
            "score_id": str(score_id.value),
            "created_at": linked_at,
        }

        try:
            insert_stmt = _conflict_ignoring_insert(self.session, CollectionLinkModel)
            if insert_stmt is not None:
                stmt = (
                    insert_stmt.values(**values)
                    .on_conflict_do_nothing(
                        index_elements=[
                            CollectionLinkModel.user_id,
                            CollectionLinkModel.score_id,
                        ]
                    )
                    .returning(CollectionLinkModel.user_id)
                )
                inserted = (await self.session.execute(stmt)).scalar_one_or_none()
            else:
                inserted = await self._add_link_with_savepoint(values)
        except IntegrityError as e:
            raise EntityNotFoundException("Score", score_id.value) from e

        if inserted is not None:
            return CollectionLink(user_id=user_id, score_id=score_id, created_at=linked_at), True

        existing = await self.get_link(user_id, score_id)
        if existing is None:
            # Conflict reported but the row is gone again: a concurrent remove won
            raise EntityNotFoundException("CollectionLink", f"{user_id}/{score_id}")
        return existing, False

    async def _add_link_with_savepoint(self, values: dict[str, Any]) -> str | None:
        if await self.get_link(UserId(values["user_id"]), ScoreId.from_string(values["score_id"])):
            return None
        async with self.session.begin_nested():
            self.session.add(CollectionLinkModel(**values))
        return str(values["user_id"])

    @translate_storage_errors
    async def remove_link(self, user_id: UserId, score_id: ScoreId) -> bool:
        """Remove a link. The canonical score is never touched."""
        stmt = delete(CollectionLinkModel).where(
            CollectionLinkModel.user_id == str(user_id),
            CollectionLinkModel.score_id == str(score_id.value),
        )
        result = await self.session.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    def _collection_query(self, user_id: UserId, search: str | None) -> Select[Any]:
        stmt = (
            select(CollectionLinkModel, ScoreModel)
            .join(ScoreModel, ScoreModel.id == CollectionLinkModel.score_id)
            .where(CollectionLinkModel.user_id == str(user_id))
        )
        search_clause = _search_filter(search)
        if search_clause is not None:
            stmt = stmt.where(search_clause)
        return stmt

    @translate_storage_errors
    async def list_by_user(
        self,
        user_id: UserId,
        page: int = 1,
        page_size: int = 50,
        sort: CollectionSortField = CollectionSortField.ADDED_AT,
        order: SortOrder = SortOrder.DESC,
        search: str | None = None,
    ) -> CollectionPage:
        """List one page of a user's collection, newest additions first by default."""
        base = self._collection_query(user_id, search)
        count_stmt = select(func.count()).select_from(base.subquery())
        total = (await self.session.execute(count_stmt)).scalar_one()

        sort_column = {
            CollectionSortField.TITLE: ScoreModel.title,
            CollectionSortField.COMPOSER: ScoreModel.composer,
            CollectionSortField.CREATED_AT: ScoreModel.created_at,
            CollectionSortField.ADDED_AT: CollectionLinkModel.created_at,
        }[sort]
        ordered = sort_column.asc() if order == SortOrder.ASC else sort_column.desc()

        stmt = (
            base.order_by(ordered, ScoreModel.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await self.session.execute(stmt)
        items = [
            CollectionItem(
                score=_score_to_entity(score_model),
                added_at=ensure_utc_aware(link_model.created_at),
            )
            for link_model, score_model in result.all()
        ]
        return CollectionPage(
            items=items, total_count=total, page=page, page_size=page_size
        )


def _feedback_to_entity(model: SuggestionFeedbackModel) -> SuggestionFeedback:
    return SuggestionFeedback(
        id=FeedbackId.from_string(model.id),
        user_id=UserId(model.user_id),
        input_songs=[
            SongReference(title=s["title"], composer=s["composer"])
            for s in model.input_songs
        ],
        suggestions=[
            RatedSuggestion(
                song=SongReference(title=s["title"], composer=s["composer"]),
                user_rating=s.get("user_rating"),
            )
            for s in model.suggestions
        ],
        rating_score=model.rating_score,
        created_at=ensure_utc_aware(model.created_at),
        updated_at=ensure_utc_aware(model.updated_at),
    )


def _suggestions_to_json(suggestions: list[RatedSuggestion]) -> list[dict[str, Any]]:
    return [
        {**s.song.to_dict(), "user_rating": s.user_rating} for s in suggestions
    ]


class SuggestionFeedbackRepository(ISuggestionFeedbackRepository):
    """SQLAlchemy implementation of the suggestion feedback store."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with session."""
        self.session = session

    @translate_storage_errors
    async def add(self, feedback: SuggestionFeedback) -> None:
        """Persist a new suggestion set."""
        self.session.add(
            SuggestionFeedbackModel(
                id=str(feedback.id.value),
                user_id=str(feedback.user_id),
                suggestions=_suggestions_to_json(feedback.suggestions),
                input_songs=[s.to_dict() for s in feedback.input_songs],
                rating_score=feedback.rating_score,
                created_at=feedback.created_at,
                updated_at=feedback.updated_at,
            )
        )
        await self.session.flush()

    @translate_storage_errors
    async def get_by_id(self, feedback_id: FeedbackId) -> SuggestionFeedback | None:
        """Get a feedback record by ID."""
        stmt = select(SuggestionFeedbackModel).where(
            SuggestionFeedbackModel.id == str(feedback_id.value)
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return _feedback_to_entity(model) if model else None

    @translate_storage_errors
    async def update(self, feedback: SuggestionFeedback) -> None:
        """Persist ratings and the recomputed rating score."""
        stmt = select(SuggestionFeedbackModel).where(
            SuggestionFeedbackModel.id == str(feedback.id.value)
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        if not model:
            raise EntityNotFoundException("SuggestionFeedback", feedback.id.value)

        model.suggestions = _suggestions_to_json(feedback.suggestions)
        model.rating_score = feedback.rating_score
        model.updated_at = feedback.updated_at
        await self.session.flush()
