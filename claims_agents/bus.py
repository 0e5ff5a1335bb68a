"""Per-task ordered event channel."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, List, Optional

from .events import Event

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """Ordered view of a bus, iterated with ``async for``.

    Iteration ends once the bus is closed and every queued event has been
    delivered.
    """

    def __init__(self, bus: EventBus, queue: asyncio.Queue) -> None:
        self._bus = bus
        self._queue = queue
        self._finished = False

    def __aiter__(self) -> AsyncIterator[Event]:
        return self

    async def __anext__(self) -> Event:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._finished = True
            raise StopAsyncIteration
        return item

    def unsubscribe(self) -> None:
        self._finished = True
        self._bus._detach(self._queue)


class EventBus:
    """Single-writer, multi-subscriber channel for one task.

    The producer (the task executor, and the delegation client acting on its
    behalf) calls :meth:`publish`; subscribers drain their own queue in
    publication order. The full history is kept so that a subscriber that
    attaches late still sees the whole sequence.
    """

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        self._history: List[Event] = []
        self._queues: List[asyncio.Queue] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def history(self) -> List[Event]:
        return list(self._history)

    def publish(self, event: Event) -> bool:
        """Append an event and fan it out. Returns False if the bus is closed."""
        if self._closed:
            logger.warning(
                "Dropping %s event for task %s: bus already closed",
                event.kind.value,
                self.task_id,
            )
            return False
        self._history.append(event)
        for queue in self._queues:
            queue.put_nowait(event)
        return True

    def subscribe(self, replay: bool = True) -> Subscription:
        """Attach a subscriber, optionally replaying everything published so far."""
        queue: asyncio.Queue = asyncio.Queue()
        if replay:
            for event in self._history:
                queue.put_nowait(event)
        if self._closed:
            queue.put_nowait(_CLOSED)
        else:
            self._queues.append(queue)
        return Subscription(self, queue)

    def close(self) -> None:
        """End every subscription after its queued events have been drained."""
        if self._closed:
            return
        self._closed = True
        for queue in self._queues:
            queue.put_nowait(_CLOSED)
        self._queues.clear()

    def _detach(self, queue: asyncio.Queue) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    def last(self) -> Optional[Event]:
        return self._history[-1] if self._history else None

    def __repr__(self) -> str:
        return f"EventBus(task_id={self.task_id!r}, events={len(self._history)}, closed={self._closed})"
