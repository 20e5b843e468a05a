"""Deadline and bounded-retry helpers for slow external calls.

Hey future me - read this before "fixing" with_timeout to cancel the slow task! The contract
is ABANDON, DON'T CANCEL: when the deadline passes we stop waiting and report a timeout, but the
underlying operation keeps running until it finishes on its own. asyncio.wait_for() would cancel
it, which is exactly what we don't want for requests that may already be half-processed upstream.

Abandoned tasks are parked in _abandoned_tasks. The event loop only keeps WEAK references to
tasks, so without that set an abandoned task could be garbage collected mid-flight. The done
callback removes it again and reads its exception so asyncio doesn't complain about
"Task exception was never retrieved".

Usage:
    suggestions = await retry_with_timeout(
        lambda: client.suggest(songs, 3),
        max_retries=2,
        limit_ms=3000,
        delay_ms=1000,
    )
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from mushee.domain.exceptions import OperationTimeoutError
from mushee.infrastructure.observability.logger_template import (
    end_operation,
    start_operation,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_abandoned_tasks: set[asyncio.Future[Any]] = set()


def _forget_abandoned(task: asyncio.Future[Any]) -> None:
    _abandoned_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Abandoned operation finished with %s: %s", type(exc).__name__, exc)


def _abandon(task: asyncio.Future[Any]) -> None:
    _abandoned_tasks.add(task)
    task.add_done_callback(_forget_abandoned)


def abandoned_task_count() -> int:
    """Number of timed-out operations that are still running in the background."""
    return len(_abandoned_tasks)


async def with_timeout(operation: Awaitable[T], limit_ms: int) -> T:
    """Await `operation` for at most `limit_ms` milliseconds.

    Raises:
        OperationTimeoutError: If the deadline passes first. The operation is left running.
    """
    task = asyncio.ensure_future(operation)
    try:
        done, _ = await asyncio.wait({task}, timeout=limit_ms / 1000)
    except asyncio.CancelledError:
        # Our caller gave up - same rule, the operation keeps going on its own
        _abandon(task)
        raise

    if task in done:
        return task.result()

    _abandon(task)
    raise OperationTimeoutError(limit_ms=limit_ms)


async def retry_with_timeout(
    operation_factory: Callable[[], Awaitable[T]],
    max_retries: int,
    limit_ms: int,
    delay_ms: int,
    operation_name: str = "operation",
) -> T:
    """Run an operation with a per-attempt deadline, retrying ONLY on timeouts.

    Makes at most max_retries + 1 attempts, sleeping delay_ms between them. Any exception
    other than a timeout is raised immediately without further attempts - a 4xx from an API
    won't get better by asking again.

    Args:
        operation_factory: Creates a fresh awaitable per attempt (a coroutine can't be reused)
        max_retries: Additional attempts after the first one
        limit_ms: Deadline per attempt
        delay_ms: Pause between a timed-out attempt and the next one
        operation_name: Name used in logs

    Raises:
        OperationTimeoutError: If every attempt timed out.
    """
    attempts = max_retries + 1
    for attempt in range(1, attempts + 1):
        start_time, operation_id = start_operation(
            logger,
            operation_name,
            log_level=logging.DEBUG,
            attempt=attempt,
            max_attempts=attempts,
        )
        try:
            result = await with_timeout(operation_factory(), limit_ms)
        except OperationTimeoutError as e:
            end_operation(
                logger,
                operation_name,
                start_time,
                operation_id,
                success=False,
                error=e,
                attempt=attempt,
            )
            if attempt == attempts:
                raise OperationTimeoutError(
                    f"Operation timed out after {attempts} attempts of {limit_ms}ms",
                    limit_ms=limit_ms,
                ) from e
            await asyncio.sleep(delay_ms / 1000)
            continue

        end_operation(
            logger,
            operation_name,
            start_time,
            operation_id,
            log_level=logging.DEBUG,
            attempt=attempt,
        )
        return result

    # Only reachable with a negative max_retries
    raise OperationTimeoutError(limit_ms=limit_ms)
