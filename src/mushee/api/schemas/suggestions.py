"""API schemas for song suggestions and their ratings."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from mushee.domain.entities import RatedSuggestion, SongReference, SuggestionFeedback


class SongDetails(BaseModel):
    """A {title, composer} pair."""

    title: str = Field(..., min_length=1, max_length=200)
    composer: str = Field(..., min_length=1, max_length=200)

    def to_entity(self) -> SongReference:
        return SongReference(title=self.title.strip(), composer=self.composer.strip())


class SuggestionsRequest(BaseModel):
    """Songs to base suggestions on. Empty/omitted means 'use my library'."""

    songs: list[SongDetails] | None = Field(default=None, max_length=100)


class SuggestionItemResponse(BaseModel):
    """One suggested song and its rating."""

    title: str
    composer: str
    user_rating: int | None = None

    @classmethod
    def from_entity(cls, suggestion: RatedSuggestion) -> "SuggestionItemResponse":
        return cls(
            title=suggestion.song.title,
            composer=suggestion.song.composer,
            user_rating=suggestion.user_rating,
        )


class SuggestionsResponse(BaseModel):
    """A stored suggestion set."""

    feedback_id: str
    suggestions: list[SuggestionItemResponse]

    @classmethod
    def from_entity(cls, feedback: SuggestionFeedback) -> "SuggestionsResponse":
        return cls(
            feedback_id=str(feedback.id),
            suggestions=[SuggestionItemResponse.from_entity(s) for s in feedback.suggestions],
        )


class RatedSuggestionRequest(BaseModel):
    """A suggestion as returned earlier, with the user's thumbs up/down."""

    title: str = Field(..., min_length=1)
    composer: str = Field(..., min_length=1)
    user_rating: Literal[1, -1] | None = Field(default=None, description="1, -1 or null")

    def to_entity(self) -> RatedSuggestion:
        return RatedSuggestion(
            song=SongReference(title=self.title, composer=self.composer),
            user_rating=self.user_rating,
        )


class RateSuggestionsRequest(BaseModel):
    """All suggestions of a set, in the original order, with ratings."""

    suggestions: list[RatedSuggestionRequest] = Field(..., min_length=1)


class RateSuggestionsResponse(BaseModel):
    """Updated aggregate for a suggestion set."""

    id: str
    rating_score: int
    updated_at: datetime

    @classmethod
    def from_entity(cls, feedback: SuggestionFeedback) -> "RateSuggestionsResponse":
        return cls(
            id=str(feedback.id),
            rating_score=feedback.rating_score,
            updated_at=feedback.updated_at,
        )
