"""Fixtures for API integration tests."""

import asyncio
from collections.abc import Callable

import httpx
import pytest
from fastapi.testclient import TestClient

from mushee.config import Settings
from mushee.domain.entities import CanonicalScore
from mushee.domain.value_objects import ScoreId
from mushee.infrastructure.persistence import Database, ScoreRepository


@pytest.fixture
def upload(client: TestClient) -> Callable[..., httpx.Response]:
    """POST a file to /api/scores as the given user."""

    def _upload(
        data: bytes,
        user: str = "alice",
        filename: str = "score.musicxml",
        content_type: str = "application/vnd.recordare.musicxml+xml",
    ) -> httpx.Response:
        return client.post(
            "/api/scores",
            files={"file": (filename, data, content_type)},
            headers={"X-User-Id": user},
        )

    return _upload


@pytest.fixture
def public_scores(settings: Settings) -> list[CanonicalScore]:
    """Seed three public-domain catalog scores straight into the database."""
    scores = [
        CanonicalScore(
            id=ScoreId.generate(),
            title=title,
            composer=composer,
            content_hash=f"{index:032x}",
        )
        for index, (title, composer) in enumerate(
            [
                ("Air on the G String", "Johann Sebastian Bach"),
                ("Clair de Lune", "Claude Debussy"),
                ("Gymnopédie No. 1", "Erik Satie"),
            ],
            start=1,
        )
    ]

    async def seed() -> None:
        db = Database(settings)
        await db.create_tables()
        async with db.session_scope() as session:
            repo = ScoreRepository(session)
            for score in scores:
                await repo.add(score)
        await db.close()

    asyncio.run(seed())
    return scores
