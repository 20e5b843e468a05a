"""Application use cases - business logic orchestration."""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

TRequest = TypeVar("TRequest")
TResponse = TypeVar("TResponse")


class UseCase(ABC, Generic[TRequest, TResponse]):
    """Base class for all use cases following command pattern."""

    @abstractmethod
    async def execute(self, request: TRequest) -> TResponse:
        """Execute the use case with the given request."""
        pass


# Concrete use cases import UseCase from here, so they come after it
from mushee.application.use_cases.ingest_score import (  # noqa: E402
    IngestScoreRequest,
    IngestScoreUseCase,
)

__all__ = [
    "IngestScoreRequest",
    "IngestScoreUseCase",
    "UseCase",
]
