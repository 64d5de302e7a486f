"""
Timeout combinator.

Unlike ``asyncio.wait_for``, the wrapped operation is never cancelled when
the timer wins: it keeps running detached and its eventual outcome is only
logged.
"""

import asyncio
from typing import Awaitable, Callable, Optional, Set

import structlog

from safehorizon.shared.exceptions import TimeoutError
from safehorizon.shared.types import T

logger = structlog.get_logger(__name__)

# Strong references to operations that outlived their timeout
_detached: Set[asyncio.Task] = set()


def _on_detached_done(task: asyncio.Task) -> None:
    _detached.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug("Detached operation failed after timeout", error=str(error))


async def with_timeout(
    operation: Callable[[], Awaitable[T]],
    timeout_seconds: float,
    operation_name: Optional[str] = None
) -> T:
    """
    Race an operation against a timer.

    Args:
        operation: Zero-argument callable returning an awaitable
        timeout_seconds: Time budget for the operation
        operation_name: Name carried by the timeout error

    Returns:
        The operation's result if it finishes in time

    Raises:
        TimeoutError: If the timer wins (retryable)
    """
    task = asyncio.ensure_future(operation())
    done, _ = await asyncio.wait({task}, timeout=timeout_seconds)

    if task in done:
        return task.result()

    _detached.add(task)
    task.add_done_callback(_on_detached_done)
    logger.warning(
        "Operation timed out",
        operation=operation_name,
        timeout_seconds=timeout_seconds
    )
    raise TimeoutError(operation_name, timeout_seconds)


def detached_count() -> int:
    """Operations still running after their timeout fired."""
    return len(_detached)
