"""
Producer/consumer pipeline for streamed model output.

The producer task drains the model stream into a bounded
``asyncio.Queue``; the consumer iterates the queue. Closing the consumer
(early ``break``, task cancellation or the cancel event) cancels the
producer, so neither side can block forever on a full or empty queue.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional, TypeVar

from structiq.errors import ExecutionCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DONE = object()


class _Failure:
    def __init__(self, exc: BaseException):
        self.exc = exc


async def _produce(source: AsyncIterator[T], queue: asyncio.Queue) -> None:
    try:
        async for item in source:
            await queue.put(item)
    except Exception as exc:
        await queue.put(_Failure(exc))
        return
    await queue.put(_DONE)


async def _next_item(queue: asyncio.Queue, cancel_event: Optional[asyncio.Event]):
    if cancel_event is None:
        return await queue.get()
    if cancel_event.is_set():
        raise ExecutionCancelled("stream cancelled", stage="stream")

    getter = asyncio.ensure_future(queue.get())
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait({getter, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not getter.done():
            getter.cancel()
    if getter in done:
        return getter.result()
    raise ExecutionCancelled("stream cancelled", stage="stream")


async def pipe(
    source: AsyncIterator[T],
    *,
    maxsize: int = 64,
    cancel_event: Optional[asyncio.Event] = None,
) -> AsyncIterator[T]:
    """Re-yield *source* through a bounded queue filled by a producer task.

    Raises:
        ExecutionCancelled: when *cancel_event* is set while streaming.
        Exception: whatever the source raised, re-raised in the consumer.
    """
    queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
    producer = asyncio.ensure_future(_produce(source, queue))
    try:
        while True:
            item = await _next_item(queue, cancel_event)
            if item is _DONE:
                break
            if isinstance(item, _Failure):
                raise item.exc
            yield item
    finally:
        if not producer.done():
            logger.debug("Stream consumer closed early, cancelling producer")
            producer.cancel()
            await asyncio.wait({producer})
