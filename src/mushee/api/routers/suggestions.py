"""Song suggestion endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends

from mushee.api.dependencies import (
    CurrentUserDep,
    SessionDep,
    get_recommendation_service,
    parse_feedback_id,
)
from mushee.api.schemas.suggestions import (
    RateSuggestionsRequest,
    RateSuggestionsResponse,
    SuggestionsRequest,
    SuggestionsResponse,
)
from mushee.application.services.recommendation_service import RecommendationService
from mushee.domain.entities import RatedSuggestion, SongReference
from mushee.domain.exceptions import ValidationException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/suggestions", tags=["suggestions"])


@router.post("", response_model=SuggestionsResponse)
async def generate_suggestions(
    user_id: CurrentUserDep,
    session: SessionDep,
    service: Annotated[RecommendationService, Depends(get_recommendation_service)],
    body: Annotated[SuggestionsRequest | None, Body()] = None,
) -> SuggestionsResponse:
    """Suggest songs based on the given songs or, without a body, the caller's library."""
    songs: list[SongReference] | None = None
    if body is not None and body.songs:
        try:
            songs = [s.to_entity() for s in body.songs]
        except ValueError as e:
            raise ValidationException(str(e)) from e

    feedback = await service.generate_suggestions(user_id, songs)
    await session.commit()
    return SuggestionsResponse.from_entity(feedback)


@router.patch("/{feedback_id}", response_model=RateSuggestionsResponse)
async def rate_suggestions(
    feedback_id: str,
    body: RateSuggestionsRequest,
    user_id: CurrentUserDep,
    session: SessionDep,
    service: Annotated[RecommendationService, Depends(get_recommendation_service)],
) -> RateSuggestionsResponse:
    """Rate the suggestions of a set with thumbs up (1), down (-1) or nothing (null)."""
    try:
        ratings: list[RatedSuggestion] = [s.to_entity() for s in body.suggestions]
    except ValueError as e:
        raise ValidationException(str(e)) from e

    feedback = await service.rate_suggestions(user_id, parse_feedback_id(feedback_id), ratings)
    await session.commit()
    return RateSuggestionsResponse.from_entity(feedback)
