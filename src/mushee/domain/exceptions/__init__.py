"""Domain exceptions.

Hey future me - every exception here carries a stable `code` (what the API sends to the
client in {"error": {"code": ...}}) and a `retryable` flag. The flag is the contract with
callers: input problems are never worth retrying, upstream outages usually are. Don't
raise DomainException directly - pick (or add) a specific subclass so handlers can map it.
"""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    code: str = "internal_error"
    retryable: bool = False

    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    code = "not_found"

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class DuplicateEntityException(DomainException):
    """Raised when a unique key is already taken.

    The score store raises this when another writer won the race for a content hash.
    The ingestion use case treats it as "somebody else created it first" and re-reads.
    """

    code = "duplicate"

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} already exists")
        self.entity_type = entity_type
        self.entity_id = entity_id


class ValidationException(DomainException):
    """Raised when input fails validation.

    Never retried - the same input will fail the same way.
    """

    code = "invalid_request"


class InvalidFileFormatError(ValidationException):
    """Uploaded file has the wrong extension or declared content type."""

    code = "invalid_file_format"


class InvalidDocumentError(ValidationException):
    """Uploaded bytes are not a well-formed score document."""

    code = "invalid_document"


class FileTooLargeError(ValidationException):
    """Uploaded file is not smaller than the configured size ceiling."""

    code = "file_too_large"

    def __init__(self, size: int, limit: int) -> None:
        limit_mb = limit / (1024 * 1024)
        super().__init__(
            f"File must be smaller than {limit_mb:g}MB"
        )
        self.size = size
        self.limit = limit


class StorageUnavailableError(DomainException):
    """The database or file storage could not be reached.

    Surfaced to the caller as-is: the upload flow or the collection state machine
    decides whether to retry or resync.
    """

    code = "storage_unavailable"
    retryable = True


class ExternalServiceError(DomainException):
    """An external API returned an error or an unusable response."""

    code = "external_service_error"
    retryable = True


class OperationTimeoutError(DomainException):
    """An operation did not finish before its deadline."""

    code = "timeout"
    retryable = True

    def __init__(self, message: str | None = None, limit_ms: int | None = None) -> None:
        super().__init__(
            message
            or (
                f"Operation timed out after {limit_ms}ms"
                if limit_ms is not None
                else "Operation timed out"
            )
        )
        self.limit_ms = limit_ms


class RecommendationUnavailableError(DomainException):
    """Suggestions could not be produced right now."""

    code = "recommendation_unavailable"
    retryable = True

    def __init__(
        self,
        message: str = "Sorry, we couldn't fetch suggestions at this time. Please try again later.",
    ) -> None:
        super().__init__(message)


class ConfigurationError(DomainException):
    """Application misconfiguration."""

    code = "configuration_error"


__all__ = [
    "ConfigurationError",
    "DomainException",
    "DuplicateEntityException",
    "EntityNotFoundException",
    "ExternalServiceError",
    "FileTooLargeError",
    "InvalidDocumentError",
    "InvalidFileFormatError",
    "OperationTimeoutError",
    "RecommendationUnavailableError",
    "StorageUnavailableError",
    "ValidationException",
]
