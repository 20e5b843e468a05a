"""Shared helpers for timing and logging operations.

USAGE:
    from mushee.infrastructure.observability.logger_template import log_operation

    async with log_operation(logger, "ingest_score", user_id="u1") as fields:
        outcome = await do_ingest()
        fields["status"] = outcome.status.value
"""

import logging
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any


# Yo, this context manager logs "{operation}.started" and then either ".completed" or ".failed",
# both with duration_ms. The yielded dict is for fields you only know at the END (outcome,
# counts...) - whatever you put in it shows up on the completion log. On failure the exception
# is logged and re-raised untouched. Domain errors that are "expected" (validation, timeouts)
# log as WARNING without traceback; anything else is ERROR with the full chain.
@asynccontextmanager
async def log_operation(
    logger: logging.Logger,
    operation: str,
    expected_errors: tuple[type[BaseException], ...] = (),
    **context: Any,
) -> AsyncIterator[dict[str, Any]]:
    """Log start/end of an operation with automatic timing.

    Args:
        logger: Module logger
        operation: Operation name (e.g., "ingest_score")
        expected_errors: Exception types logged as WARNING without traceback
        **context: Extra fields for both log lines
    """
    start = time.monotonic()
    result_fields: dict[str, Any] = {}
    logger.info(f"{operation}.started", extra=context)

    try:
        yield result_fields
    except Exception as e:
        duration_ms = int((time.monotonic() - start) * 1000)
        extra = {
            **context,
            "duration_ms": duration_ms,
            "error": str(e),
            "error_type": type(e).__name__,
        }
        if isinstance(e, expected_errors):
            logger.warning(f"{operation}.failed", extra=extra)
        else:
            logger.error(f"{operation}.failed", extra=extra, exc_info=True)
        raise

    duration_ms = int((time.monotonic() - start) * 1000)
    logger.info(
        f"{operation}.completed",
        extra={**context, **result_fields, "duration_ms": duration_ms},
    )


# Manual variant for code that can't wrap itself in a context manager, like the retry loop
# that logs every attempt. Pass the returned tuple straight to end_operation().
def start_operation(
    logger: logging.Logger,
    operation: str,
    operation_id: str | None = None,
    log_level: int = logging.INFO,
    **context: Any,
) -> tuple[float, str]:
    """Log operation start and return (start_time, operation_id)."""
    if operation_id is None:
        operation_id = str(uuid.uuid4())

    start_time = time.monotonic()
    logger.log(
        log_level,
        f"{operation}.started",
        extra={**context, "operation_id": operation_id},
    )
    return start_time, operation_id


def end_operation(
    logger: logging.Logger,
    operation: str,
    start_time: float,
    operation_id: str,
    success: bool = True,
    error: BaseException | None = None,
    log_level: int = logging.INFO,
    **context: Any,
) -> None:
    """Log operation end with duration.

    Failures log at WARNING: the caller decides whether the failure is final.
    """
    duration_ms = int((time.monotonic() - start_time) * 1000)

    if success:
        logger.log(
            log_level,
            f"{operation}.completed",
            extra={**context, "operation_id": operation_id, "duration_ms": duration_ms},
        )
        return

    logger.warning(
        f"{operation}.failed",
        extra={
            **context,
            "operation_id": operation_id,
            "duration_ms": duration_ms,
            "error": str(error) if error else "Unknown error",
            "error_type": type(error).__name__ if error else "Unknown",
        },
    )
