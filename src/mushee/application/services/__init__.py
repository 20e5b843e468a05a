"""Application services."""

from .collection_service import CollectionService
from .collection_state import (
    CollectionState,
    CollectionStateMachine,
    CollectionStatus,
)
from .recommendation_service import RecommendationService
from .timeouts import retry_with_timeout, with_timeout

__all__ = [
    "CollectionService",
    "CollectionState",
    "CollectionStateMachine",
    "CollectionStatus",
    "RecommendationService",
    "retry_with_timeout",
    "with_timeout",
]
