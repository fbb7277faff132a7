"""
Bounded stream rewriter.

Applies an async mutation to every item of a lazily consumed cursor with a
capped number of mutations in flight. Descendant sets can be large: an
unbounded fan-out would flood the store, a sequential loop would be slow.

Invariants:
    - At most `num_workers` handler calls are outstanding at any time
    - After the first handler failure no new item is scheduled
    - The call returns or raises only after every started handler settled
    - No ordering between items is guaranteed
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterable, Awaitable, Callable, Optional, TypeVar

from ..errors import ConfigurationError, PartialCascadeError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def stream_worker(
    cursor: AsyncIterable[T],
    num_workers: int,
    handler: Callable[[T], Awaitable[Any]],
    description: str = "stream rewrite",
) -> int:
    """Run `handler` over every item of `cursor`, at most `num_workers` at a time.

    Args:
        cursor: Async iterable of items, consumed lazily
        num_workers: Maximum concurrent handler calls
        handler: Coroutine function applied to each item
        description: Label used in logs and error messages

    Returns:
        Number of items processed

    Raises:
        ConfigurationError: If num_workers or handler is invalid (before iterating)
        PartialCascadeError: If a handler failed; the first failure is __cause__
        Exception: Errors raised by the cursor itself, unchanged
    """
    if isinstance(num_workers, bool) or not isinstance(num_workers, int) or num_workers < 1:
        raise ConfigurationError(
            f"num_workers must be a positive integer, got {num_workers!r}", option="num_workers"
        )
    if not callable(handler):
        raise ConfigurationError("A handler coroutine function is required", option="handler")

    semaphore = asyncio.Semaphore(num_workers)
    pending: set[asyncio.Task[None]] = set()
    first_error: Optional[BaseException] = None
    completed = 0
    failed = 0

    async def run(item: T) -> None:
        nonlocal first_error, completed, failed
        try:
            await handler(item)
            completed += 1
        except Exception as e:
            failed += 1
            if first_error is None:
                first_error = e
                logger.warning(
                    f"{description} failed: {e}",
                    extra={"completed": completed, "num_workers": num_workers},
                )
        finally:
            semaphore.release()

    iterator = cursor.__aiter__()
    try:
        async for item in iterator:
            await semaphore.acquire()
            if first_error is not None:
                semaphore.release()
                break
            task = asyncio.ensure_future(run(item))
            pending.add(task)
            task.add_done_callback(pending.discard)
    finally:
        if pending:
            await asyncio.gather(*pending)
        aclose = getattr(iterator, "aclose", None)
        if first_error is not None and aclose is not None:
            await aclose()

    if first_error is not None:
        raise PartialCascadeError(
            f"{description} stopped after {completed} updates: {first_error}",
            completed=completed,
            failed=failed,
        ) from first_error

    logger.debug(f"{description} finished", extra={"processed": completed})
    return completed
