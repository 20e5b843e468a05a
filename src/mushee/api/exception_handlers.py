"""Exception handlers turning domain exceptions into JSON error responses.

Every error leaves the API in the same shape:

    {"error": {"code": "file_too_large", "message": "File must be smaller than ..."}}

plus "retryable": true when the client may simply try again later.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from mushee.domain.exceptions import (
    ConfigurationError,
    DomainException,
    DuplicateEntityException,
    EntityNotFoundException,
    ExternalServiceError,
    FileTooLargeError,
    OperationTimeoutError,
    RecommendationUnavailableError,
    StorageUnavailableError,
    ValidationException,
)

logger = logging.getLogger(__name__)

# Most specific first - the first isinstance() match wins
STATUS_BY_EXCEPTION: tuple[tuple[type[DomainException], int], ...] = (
    (FileTooLargeError, status.HTTP_413_CONTENT_TOO_LARGE),
    (ValidationException, status.HTTP_422_UNPROCESSABLE_CONTENT),
    (EntityNotFoundException, status.HTTP_404_NOT_FOUND),
    (DuplicateEntityException, status.HTTP_409_CONFLICT),
    (StorageUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (RecommendationUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (OperationTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (ExternalServiceError, status.HTTP_502_BAD_GATEWAY),
    (ConfigurationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_for(exc: DomainException) -> int:
    """Map a domain exception to its HTTP status code."""
    for exc_type, status_code in STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(code: str, message: str, retryable: bool = False) -> dict[str, Any]:
    """Build the shared error response body."""
    body: dict[str, Any] = {"error": {"code": code, "message": message}}
    if retryable:
        body["error"]["retryable"] = True
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers for domain, validation, database and HTTP exceptions."""

    @app.exception_handler(DomainException)
    async def domain_exception_handler(
        request: Request, exc: DomainException
    ) -> JSONResponse:
        status_code = status_for(exc)
        log = logger.error if status_code >= 500 and not exc.retryable else logger.warning
        log(
            "%s at %s: %s",
            type(exc).__name__,
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error_code": exc.code},
        )
        return JSONResponse(
            status_code=status_code,
            content=error_body(exc.code, exc.message, exc.retryable),
        )

    # Hey future me - a commit that fails because SQLite is locked/gone raises straight from
    # SQLAlchemy, outside any repository. Same meaning as StorageUnavailableError, same answer.
    @app.exception_handler(OperationalError)
    async def operational_error_handler(
        request: Request, exc: OperationalError
    ) -> JSONResponse:
        logger.error(
            "Database unavailable at %s: %s",
            request.url.path,
            exc.orig if exc.orig is not None else exc,
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=error_body(
                StorageUnavailableError.code, "Database is unavailable", retryable=True
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"{location}: {first.get('msg', 'Invalid request')}" if location else (
            first.get("msg", "Invalid request")
        )
        logger.warning(
            "Request validation error at %s: %s",
            request.url.path,
            message,
            extra={"path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            content=error_body(ValidationException.code, message),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        code = "not_found" if exc.status_code == 404 else "http_error"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(code, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )
