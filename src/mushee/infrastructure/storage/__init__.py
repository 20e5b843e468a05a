"""Raw score file storage."""

from .file_storage import LocalScoreFileStorage

__all__ = ["LocalScoreFileStorage"]
