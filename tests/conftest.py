"""Shared pytest fixtures."""

from collections.abc import AsyncGenerator, Callable, Generator
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession

from mushee.config import (
    DatabaseSettings,
    RecommendationSettings,
    Settings,
    StorageSettings,
)
from mushee.infrastructure.persistence import Database
from mushee.main import create_app


def _element(tag: str, value: str | None) -> str:
    return f"<{tag}>{value}</{tag}>" if value is not None else ""


def build_score_xml(
    title: str | None = "Moonlight Sonata",
    composer: str | None = "Ludwig van Beethoven",
    movement_number: str | None = None,
    movement_title: str | None = None,
    root: str = "score-partwise",
    extra: str = "",
) -> bytes:
    """Render a minimal MusicXML document."""
    work = f"<work>{_element('work-title', title)}</work>" if title is not None else ""
    creator = (
        f'<identification><creator type="composer">{composer}</creator></identification>'
        if composer is not None
        else ""
    )
    body = (
        f'<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<{root} version="4.0">'
        f"{work}"
        f"{_element('movement-number', movement_number)}"
        f"{_element('movement-title', movement_title)}"
        f"{creator}"
        f'<part-list><score-part id="P1"><part-name>Piano</part-name></score-part></part-list>'
        f"{extra}"
        f"</{root}>"
    )
    return body.encode("utf-8")


@pytest.fixture
def score_xml() -> Callable[..., bytes]:
    """Factory fixture building MusicXML bytes."""
    return build_score_xml


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway SQLite file and score directory."""
    return Settings(
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'mushee.db'}"),
        storage=StorageSettings(score_path=tmp_path / "scores"),
        recommendation=RecommendationSettings(
            api_key="test-key",
            timeout_ms=3000,
            max_retries=2,
            retry_delay_ms=0,
        ),
    )


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    """Database with all tables created."""
    db = Database(settings)
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
async def session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """A session inside a transaction that commits at the end of the test."""
    async with database.session_scope() as session:
        yield session


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    """Application wired to the test settings."""
    return create_app(settings)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Test client with lifespan (tables, storage, clients) running."""
    with TestClient(app) as test_client:
        yield test_client
