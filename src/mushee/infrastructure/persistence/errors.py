# Hey future me - this is where database driver errors stop being SQLAlchemy's problem!
#
# Repositories are decorated with @translate_storage_errors so callers only ever see domain
# exceptions. A dead database (OperationalError, or any other DBAPIError the driver throws)
# becomes StorageUnavailableError, which is retryable and maps to HTTP 503.
#
# IntegrityError is ALSO a DBAPIError - but it means "constraint said no", not "database is
# down". It passes through untouched so repositories can turn it into something meaningful
# (DuplicateEntityException, ValidationException, ...). Don't reorder the except clauses!
#
# NO retries here. Storage failures are surfaced, the caller decides what to do.
"""Translation of database driver errors into domain exceptions."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from mushee.domain.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def translate_storage_errors(
    func: Callable[P, Awaitable[T]],
) -> Callable[P, Awaitable[T]]:
    """Decorator converting connection-level database errors to StorageUnavailableError."""

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        try:
            return await func(*args, **kwargs)
        except IntegrityError:
            raise
        except OperationalError as e:
            logger.error(
                "Database operational error in %s: %s",
                func.__qualname__,
                e.orig if e.orig is not None else e,
            )
            raise StorageUnavailableError("Database is unavailable") from e
        except DBAPIError as e:
            logger.error(
                "Database driver error in %s: %s",
                func.__qualname__,
                e.orig if e.orig is not None else e,
            )
            raise StorageUnavailableError("Database error") from e

    return wrapper
