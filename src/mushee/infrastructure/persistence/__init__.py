"""Persistence layer for database access."""

from .database import Database
from .models import (
    Base,
    CollectionLinkModel,
    ScoreModel,
    SuggestionFeedbackModel,
)
from .repositories import (
    CollectionRepository,
    ScoreRepository,
    SuggestionFeedbackRepository,
)

__all__ = [
    "Base",
    "CollectionLinkModel",
    "CollectionRepository",
    "Database",
    "ScoreModel",
    "ScoreRepository",
    "SuggestionFeedbackModel",
    "SuggestionFeedbackRepository",
]
