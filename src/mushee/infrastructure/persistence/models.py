"""SQLAlchemy ORM models for MuShee."""

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# Matches MAX_METADATA_LENGTH in the metadata extractor
METADATA_COLUMN_LENGTH = 200


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! Timestamps come back "naive", so attach
# UTC before comparing them with datetime.now(UTC) or you get the offset-naive/aware TypeError.
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Listen up, ScoreModel is the canonical record! content_hash is UNIQUE and that constraint is
# the ONLY thing standing between two concurrent uploads of the same file and a duplicate row.
# Don't drop it, don't turn it into a plain index. title/composer are NOT NULL and sized to
# the 200 characters the extractor truncates to.
class ScoreModel(Base):
    """SQLAlchemy model for CanonicalScore."""

    __tablename__ = "scores"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    title: Mapped[str] = mapped_column(String(METADATA_COLUMN_LENGTH), nullable=False)
    composer: Mapped[str] = mapped_column(String(METADATA_COLUMN_LENGTH), nullable=False)
    subtitle: Mapped[str | None] = mapped_column(
        String(METADATA_COLUMN_LENGTH), nullable=True
    )
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    # NULL for seeded public-domain scores
    uploader_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True, index=True
    )
    file_reference: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    links: Mapped[list["CollectionLinkModel"]] = relationship(
        back_populates="score", passive_deletes=True
    )

    __table_args__ = (
        Index("ix_scores_title_lower", func.lower(title)),
        Index("ix_scores_composer_lower", func.lower(composer)),
    )


# The composite primary key IS the "at most one link per (user, score)" rule. ondelete=RESTRICT
# means the database refuses to delete a score that somebody still has in their collection.
class CollectionLinkModel(Base):
    """SQLAlchemy model for CollectionLink (user_songs in the old schema)."""

    __tablename__ = "collection_links"

    user_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    score_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("scores.id", ondelete="RESTRICT"),
        primary_key=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    score: Mapped[ScoreModel] = relationship(back_populates="links")

    __table_args__ = (Index("ix_collection_links_user_created", "user_id", "created_at"),)


class SuggestionFeedbackModel(Base):
    """SQLAlchemy model for a rated suggestion set."""

    __tablename__ = "suggestion_feedback"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    # [{"title": ..., "composer": ..., "user_rating": 1 | -1 | null}, ...]
    suggestions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    # [{"title": ..., "composer": ...}, ...] exactly as sent to the recommendation API
    input_songs: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    rating_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )
