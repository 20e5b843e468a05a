"""Dependency injection for API endpoints."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mushee.application.services.collection_service import CollectionService
from mushee.application.services.recommendation_service import RecommendationService
from mushee.application.use_cases.ingest_score import IngestScoreUseCase
from mushee.config import Settings
from mushee.domain.exceptions import ValidationException
from mushee.domain.ports import IRecommendationClient, IScoreFileStorage
from mushee.domain.value_objects import FeedbackId, ScoreId, UserId
from mushee.infrastructure.persistence import (
    CollectionRepository,
    Database,
    ScoreRepository,
    SuggestionFeedbackRepository,
)

USER_ID_HEADER = "X-User-Id"


def get_app_settings(request: Request) -> Settings:
    """Get the settings the app was created with."""
    settings: Settings = request.app.state.settings
    return settings


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session from app state (commits when the request succeeds)."""
    db: Database = request.app.state.db
    async with db.session_scope() as session:
        yield session


def get_file_storage(request: Request) -> IScoreFileStorage:
    """Get the raw score file storage from app state."""
    storage: IScoreFileStorage = request.app.state.file_storage
    return storage


def get_recommendation_client(request: Request) -> IRecommendationClient:
    """Get the shared recommendation client (one httpx pool for the whole app)."""
    client: IRecommendationClient = request.app.state.recommendation_client
    return client


# Hey future me - authentication lives in front of us (gateway/auth proxy). By the time a request
# gets here the user's id is in X-User-Id; we only check it's there and sane. Missing header on
# a user-scoped endpoint is a 422 invalid_request, not a 401 - we never saw credentials at all.
def get_current_user_id(
    x_user_id: Annotated[str | None, Header(alias=USER_ID_HEADER)] = None,
) -> UserId:
    """Get the requesting user's id from the X-User-Id header."""
    if x_user_id is None or not x_user_id.strip():
        raise ValidationException(f"Missing {USER_ID_HEADER} header")
    try:
        return UserId.from_string(x_user_id)
    except ValueError as e:
        raise ValidationException(str(e)) from e


SessionDep = Annotated[AsyncSession, Depends(get_db_session)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
CurrentUserDep = Annotated[UserId, Depends(get_current_user_id)]


def get_ingest_score_use_case(
    session: SessionDep,
    settings: SettingsDep,
    file_storage: Annotated[IScoreFileStorage, Depends(get_file_storage)],
) -> IngestScoreUseCase:
    """Get the upload ingestion use case bound to this request's session."""
    return IngestScoreUseCase(
        score_repository=ScoreRepository(session),
        collection_repository=CollectionRepository(session),
        file_storage=file_storage,
        settings=settings.upload,
    )


def get_collection_service(
    session: SessionDep,
    settings: SettingsDep,
    file_storage: Annotated[IScoreFileStorage, Depends(get_file_storage)],
) -> CollectionService:
    """Get the catalog/collection service bound to this request's session."""
    return CollectionService(
        score_repository=ScoreRepository(session),
        collection_repository=CollectionRepository(session),
        settings=settings.collection,
        file_storage=file_storage,
    )


def get_recommendation_service(
    session: SessionDep,
    settings: SettingsDep,
    client: Annotated[IRecommendationClient, Depends(get_recommendation_client)],
) -> RecommendationService:
    """Get the suggestion service bound to this request's session."""
    return RecommendationService(
        client=client,
        collection_repository=CollectionRepository(session),
        feedback_repository=SuggestionFeedbackRepository(session),
        settings=settings.recommendation,
    )


def parse_score_id(value: str) -> ScoreId:
    """Turn a path/body score id into a ScoreId (422 on garbage)."""
    try:
        return ScoreId.from_string(value)
    except ValueError as e:
        raise ValidationException(f"Invalid score ID format: {value}") from e


def parse_feedback_id(value: str) -> FeedbackId:
    """Turn a path feedback id into a FeedbackId (422 on garbage)."""
    try:
        return FeedbackId.from_string(value)
    except ValueError as e:
        raise ValidationException(f"Invalid feedback ID format: {value}") from e
