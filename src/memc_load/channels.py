"""
Stop-aware queue operations.

Every blocking point of the pipeline (queue put, queue get, waiting for a
queue to drain) races against one broadcast ``asyncio.Event``. Once the event
is set, none of these operations blocks any further.
"""

import asyncio
from collections.abc import Awaitable
from typing import Any

# Returned by get_or_stop() when the stop event fired first
STOPPED = object()


async def _race(operation: Awaitable[Any], stop: asyncio.Event) -> tuple[bool, Any]:
    """Await ``operation`` unless ``stop`` fires first.

    Returns:
        (True, result) if the operation completed, (False, None) otherwise.
        The losing side is cancelled.
    """
    op_task = asyncio.ensure_future(operation)
    stop_task = asyncio.ensure_future(stop.wait())
    try:
        await asyncio.wait({op_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (op_task, stop_task):
            if not task.done():
                task.cancel()

    # The operation wins ties: a completed put has already enqueued its item
    if op_task.done() and not op_task.cancelled():
        return True, op_task.result()
    return False, None


async def put_or_stop(queue: asyncio.Queue, item: Any, stop: asyncio.Event) -> bool:
    """Put ``item`` on ``queue``, waiting for space. False if stopped first."""
    if stop.is_set():
        return False
    try:
        queue.put_nowait(item)
        return True
    except asyncio.QueueFull:
        pass

    completed, _ = await _race(queue.put(item), stop)
    return completed


async def get_or_stop(queue: asyncio.Queue, stop: asyncio.Event) -> Any:
    """Take the next item from ``queue``. Returns STOPPED if stopped first."""
    if stop.is_set():
        return STOPPED
    try:
        return queue.get_nowait()
    except asyncio.QueueEmpty:
        pass

    completed, item = await _race(queue.get(), stop)
    return item if completed else STOPPED


async def join_or_stop(queue: asyncio.Queue, stop: asyncio.Event) -> bool:
    """Wait until every queued item is marked done. False if stopped first."""
    if stop.is_set():
        return False
    completed, _ = await _race(queue.join(), stop)
    return completed
