"""Application settings loaded from environment variables.

Hey future me - every sub-settings class reads its own env prefix (DATABASE_, UPLOAD_,
RECOMMENDATION_, ...) so you can override a single knob without touching the rest.
The top-level Settings also accepts nested overrides like DATABASE__URL via the "__"
delimiter. get_settings() is cached - tests that need different values should build
Settings(...) directly and pass it around instead of mutating the cached instance!
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_", extra="ignore")

    url: str = Field(
        default="sqlite+aiosqlite:///./data/mushee.db",
        description="SQLAlchemy async database URL",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")
    pool_pre_ping: bool = Field(default=True)
    pool_size: int = Field(default=5, ge=1)
    max_overflow: int = Field(default=10, ge=0)
    pool_timeout: int = Field(default=30, ge=1)
    pool_recycle: int = Field(default=1800, ge=-1)


class UploadSettings(BaseSettings):
    """Acceptance criteria for uploaded score files."""

    model_config = SettingsConfigDict(env_prefix="UPLOAD_", extra="ignore")

    max_file_size_bytes: int = Field(default=10 * 1024 * 1024, ge=1)
    allowed_extensions: tuple[str, ...] = (".xml", ".musicxml")
    # Browsers disagree wildly on what to send for .musicxml - octet-stream shows up a lot
    allowed_content_types: tuple[str, ...] = (
        "application/xml",
        "text/xml",
        "application/vnd.recordare.musicxml+xml",
        "application/vnd.recordare.musicxml",
        "application/octet-stream",
    )
    metadata_max_length: int = Field(default=200, ge=1)
    placeholder_title: str = Field(default="Untitled", min_length=1)
    placeholder_composer: str = Field(default="Unknown Composer", min_length=1)


class StorageSettings(BaseSettings):
    """Raw score file storage."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_", extra="ignore")

    score_path: Path = Field(default=Path("./data/scores"))


class RecommendationSettings(BaseSettings):
    """Settings for the external recommendation (LLM) API."""

    model_config = SettingsConfigDict(env_prefix="RECOMMENDATION_", extra="ignore")

    api_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions")
    api_key: str = Field(default="")
    model: str = Field(default="anthropic/claude-3-haiku:beta")
    # The UI promises an answer (or a "try again later") within ~3 seconds per attempt
    timeout_ms: int = Field(default=3000, ge=1)
    max_retries: int = Field(default=2, ge=0)
    retry_delay_ms: int = Field(default=1000, ge=0)
    suggestion_count: int = Field(default=3, ge=1)
    library_sample_limit: int = Field(default=100, ge=1)

    @property
    def is_configured(self) -> bool:
        """Check whether an API key is available."""
        return bool(self.api_key.strip())


class CollectionSettings(BaseSettings):
    """Pagination defaults for library and catalog listings."""

    model_config = SettingsConfigDict(env_prefix="COLLECTION_", extra="ignore")

    page_size: int = Field(default=50, ge=1)
    max_page_size: int = Field(default=100, ge=1)


class ObservabilitySettings(BaseSettings):
    """Logging and tracing settings."""

    model_config = SettingsConfigDict(env_prefix="OBSERVABILITY_", extra="ignore")

    log_json_format: bool = Field(default=False)


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = Field(default="mushee")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    recommendation: RecommendationSettings = Field(
        default_factory=RecommendationSettings
    )
    collection: CollectionSettings = Field(default_factory=CollectionSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    def _get_sqlite_db_path(self) -> Path | None:
        """Return the SQLite database file path, or None for other backends."""
        url = self.database.url
        if not url.startswith("sqlite"):
            return None
        _, _, path = url.partition(":///")
        if not path or path == ":memory:":
            return None
        return Path(path)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
