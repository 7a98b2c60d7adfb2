"""Cooperative cancellation for network calls."""

import asyncio
from typing import Awaitable, TypeVar

from ..exceptions import OperationCancelled

T = TypeVar("T")


async def run_cancellable(awaitable: Awaitable[T], stop_event: asyncio.Event) -> T:
    """Await ``awaitable`` unless ``stop_event`` fires first.

    When the stop event wins, the in-flight operation is cancelled (which
    aborts the underlying HTTP request) and ``OperationCancelled`` is raised.
    A result that is already available always wins over the stop request.
    """
    if stop_event.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise OperationCancelled("stop requested")

    task = asyncio.ensure_future(awaitable)
    stopper = asyncio.ensure_future(stop_event.wait())
    try:
        await asyncio.wait({task, stopper}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise
    finally:
        stopper.cancel()

    if task.done():
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    raise OperationCancelled("stop requested during network call")
