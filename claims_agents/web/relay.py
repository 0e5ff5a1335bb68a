"""Relays a task's events to a client as SSE frames."""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator, Awaitable, Callable, Optional

from ..bus import EventBus
from ..errors import RelayTransportError
from ..events import Error, Event, is_terminal

logger = logging.getLogger("claims_agents.web.api")

CancelHook = Callable[[], bool]
FrameSender = Callable[[str], Awaitable[None]]


def format_sse_event(event: Event) -> str:
    """Render one event using SSE framing."""
    payload = json.dumps(event.to_wire(), separators=(",", ":"), ensure_ascii=False)
    return f"event: {event.kind.value}\ndata: {payload}\n\n"


class EventRelay:
    """Streams one task's bus to one client connection, in bus order.

    Delivery is at-most-once: nothing is buffered for a client that went
    away. When the connection is lost before the task's terminal event has
    been sent, the relay cancels the task through ``cancel``; if no
    cancellation could be requested and the task has not ended yet, it
    publishes a single ``Error`` on the bus instead.

    Example:
        relay = EventRelay(task.id, bus, cancel=lambda: manager.cancel_nowait(task.id))
        return StreamingResponse(relay.frames(), media_type="text/event-stream")
    """

    def __init__(self, task_id: str, bus: EventBus, cancel: Optional[CancelHook] = None) -> None:
        self.task_id = task_id
        self.bus = bus
        self.cancel = cancel
        self.sent = 0
        self.finished = False

    async def frames(self) -> AsyncIterator[str]:
        """Yield SSE frames until the task's terminal event has been sent."""
        subscription = self.bus.subscribe(replay=True)
        try:
            async for event in subscription:
                yield format_sse_event(event)
                self.sent += 1
                if is_terminal(event):
                    self.finished = True
                    break
            else:
                self.finished = True
        finally:
            subscription.unsubscribe()
            if not self.finished:
                self._abandon("client disconnected")

    async def pipe(self, send: FrameSender) -> int:
        """Push frames through ``send``; stop at the first failed write.

        Returns:
            The number of frames written.
        """
        subscription = self.bus.subscribe(replay=True)
        try:
            async for event in subscription:
                try:
                    await send(format_sse_event(event))
                except (RelayTransportError, ConnectionError, OSError) as e:
                    self._abandon(str(e) or e.__class__.__name__)
                    return self.sent
                self.sent += 1
                if is_terminal(event):
                    break
            self.finished = True
            return self.sent
        finally:
            subscription.unsubscribe()

    def _abandon(self, reason: str) -> None:
        logger.warning("relay_abandoned task_id=%s frames_sent=%s reason=%s", self.task_id, self.sent, reason)
        self.finished = True
        if self.cancel is not None and self.cancel():
            return
        last = self.bus.last()
        if not self.bus.closed and (last is None or not is_terminal(last)):
            self.bus.publish(Error(message=f"Relay stopped: {reason}"))
