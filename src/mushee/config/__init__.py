"""Configuration module for MuShee."""

from .settings import (
    CollectionSettings,
    DatabaseSettings,
    ObservabilitySettings,
    RecommendationSettings,
    Settings,
    StorageSettings,
    UploadSettings,
    get_settings,
)

__all__ = [
    "CollectionSettings",
    "DatabaseSettings",
    "ObservabilitySettings",
    "RecommendationSettings",
    "Settings",
    "StorageSettings",
    "UploadSettings",
    "get_settings",
]
