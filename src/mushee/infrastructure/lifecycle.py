"""Application lifecycle management for startup and shutdown tasks."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mushee.config import Settings
from mushee.domain.exceptions import ConfigurationError
from mushee.infrastructure.integrations import RecommendationClient
from mushee.infrastructure.observability import configure_logging
from mushee.infrastructure.persistence import Database
from mushee.infrastructure.storage import LocalScoreFileStorage

logger = logging.getLogger(__name__)


# Hey future me, SQLite needs a writable directory for the .db file AND its -journal/-wal
# siblings. Checking that here gives a readable ConfigurationError at startup instead of a
# cryptic "unable to open database file" on the first upload. No-op for PostgreSQL.
def _prepare_directories(settings: Settings) -> None:
    """Create and verify the directories for the database and raw score files."""
    targets = [settings.storage.score_path]
    db_path = settings._get_sqlite_db_path()
    if db_path is not None:
        targets.append(db_path.parent)

    for directory in targets:
        try:
            directory.mkdir(parents=True, exist_ok=True)
            probe = directory / ".mushee_write_test"
            probe.write_bytes(b"test")
            probe.unlink()
        except OSError as exc:
            raise ConfigurationError(
                f"Directory '{directory}' is not writable: {exc}. "
                "Adjust DATABASE_URL / STORAGE_SCORE_PATH or the directory permissions."
            ) from exc


# Everything before `yield` runs at startup, everything after at shutdown. Shared resources
# (database, file storage, recommendation client) live on app.state for the dependencies.
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = app.state.settings

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s", settings.app_name)

    _prepare_directories(settings)

    db = Database(settings)
    recommendation_client = RecommendationClient(settings.recommendation)
    try:
        await db.create_tables()
        app.state.db = db
        app.state.file_storage = LocalScoreFileStorage(settings.storage.score_path)
        app.state.recommendation_client = recommendation_client

        if not settings.recommendation.is_configured:
            logger.warning(
                "RECOMMENDATION_API_KEY is not set - suggestions will be unavailable"
            )
        logger.info("Application startup complete")

        yield
    finally:
        logger.info("Shutting down application")
        await recommendation_client.close()
        await db.close()
