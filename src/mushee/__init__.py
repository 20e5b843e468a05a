"""MuShee - sheet-music library with deduplicated score ingestion."""

__version__ = "0.4.0"
