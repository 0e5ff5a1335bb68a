"""Delegation of a request to the peer agent over its streaming endpoint."""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import time
from typing import AsyncIterator, Optional

import httpx

from ..bus import EventBus
from ..errors import DelegationError, EventDecodeError
from ..events import FORWARDABLE_KINDS, AgentActive, Delegation, Event, ToolCall, decode_payload
from ..observability import AgentObserver
from ..tasks import TaskState
from ..tools.definitions import DELEGATION_TOOL
from .protocol import PeerMessage, SendMessageRequest, StatusUpdate, TaskSnapshot, parse_update

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Error delegating to {name}: "
EMPTY_REPORT = "Investigation complete but no details available"

_END = object()


class _StreamFailure:
    """Queue marker carrying the exception that ended the peer stream."""

    def __init__(self, error: BaseException) -> None:
        self.error = error


class DelegationClient:
    """Sends one request to the peer agent and relays its progress.

    The peer's structured progress events (tool calls, thinking, status) are
    republished on the delegating task's bus as they arrive, so the user sees
    the delegate working in real time. A reader task pulls frames off the
    HTTP stream into a bounded queue; :meth:`delegate` drains it in order.

    ``delegate`` never raises for peer problems: transport errors, malformed
    frames, a stream without a final update or a failed peer task all come
    back as a string starting with ``"Error delegating to <peer>:"`` so the
    reasoner can decide what to do next. Cancellation propagates.

    Example:
        client = DelegationClient("http://localhost:3003", "detection", "investigation", "google")
        report = await client.delegate("Investigate provider PRV52019", bus)
    """

    def __init__(
        self,
        peer_url: str,
        from_agent: str,
        to_agent: str,
        to_vendor: str,
        display_name: str = "Investigation Agent",
        tool_name: str = DELEGATION_TOOL,
        timeout_seconds: float = 300.0,
        channel_size: int = 64,
        client: Optional[httpx.AsyncClient] = None,
        observer: Optional[AgentObserver] = None,
    ) -> None:
        self.peer_url = peer_url.rstrip("/")
        self.from_agent = from_agent
        self.to_agent = to_agent
        self.to_vendor = to_vendor
        self.display_name = display_name
        self.tool_name = tool_name
        self.timeout_seconds = timeout_seconds
        self.channel_size = max(1, channel_size)
        self.observer = observer or AgentObserver(agent_id=from_agent)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds or None, connect=10.0))

    def error_text(self, message: str) -> str:
        return ERROR_PREFIX.format(name=self.display_name) + message

    async def delegate(self, request: str, bus: EventBus, context_id: Optional[str] = None) -> str:
        """Run ``request`` on the peer and return its final answer or an error string."""
        bus.publish(Delegation(from_agent=self.from_agent, to_agent=self.to_agent))
        bus.publish(AgentActive(agent=self.to_agent, vendor=self.to_vendor, status="working"))
        logger.info("Delegating to %s at %s (task %s)", self.to_agent, self.peer_url, bus.task_id)

        started = time.perf_counter()
        success = False
        try:
            exchange = self._exchange(request, bus, context_id)
            if self.timeout_seconds and self.timeout_seconds > 0:
                report = await asyncio.wait_for(exchange, timeout=self.timeout_seconds)
            else:
                report = await exchange
            success = True
            return report
        except asyncio.TimeoutError:
            return self._failed(f"No response within {self.timeout_seconds:g}s")
        except Exception as e:
            return self._failed(_describe(e))
        finally:
            bus.publish(AgentActive(agent=self.to_agent, vendor=self.to_vendor, status="completed"))
            self.observer.log_delegation(self.to_agent, (time.perf_counter() - started) * 1000, success)

    def _failed(self, message: str) -> str:
        logger.warning("Delegation to %s failed: %s", self.to_agent, message)
        return self.error_text(message or "Unknown error")

    async def _exchange(self, request: str, bus: EventBus, context_id: Optional[str]) -> str:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.channel_size)
        reader = asyncio.create_task(self._read_stream(request, context_id, queue))
        try:
            while True:
                item = await queue.get()
                if item is _END:
                    raise DelegationError("Peer stream ended without a final update")
                if isinstance(item, _StreamFailure):
                    raise item.error
                if isinstance(item, TaskSnapshot):
                    logger.debug("Peer accepted request as task %s", item.id)
                    continue
                if item.final:
                    return self._final_text(item)
                self._forward(item, bus)
        finally:
            reader.cancel()
            await asyncio.gather(reader, return_exceptions=True)

    def _final_text(self, update: StatusUpdate) -> str:
        text = update.text()
        if update.status.state == TaskState.COMPLETED:
            return text or EMPTY_REPORT
        raise DelegationError(text or f"Peer task ended in state {update.status.state.value}")

    def _forward(self, update: StatusUpdate, bus: EventBus) -> None:
        text = update.text()
        if not text:
            return
        try:
            payload = json.loads(text)
        except ValueError:
            logger.debug("Discarding peer narration: %s", text[:80])
            return
        try:
            event: Event = decode_payload(payload)
        except EventDecodeError:
            logger.debug("Discarding unrecognized peer payload")
            return
        if event.kind not in FORWARDABLE_KINDS:
            return
        if isinstance(event, ToolCall):
            event = dataclasses.replace(event, agent=self.to_agent)
        bus.publish(event)

    async def _read_stream(self, request: str, context_id: Optional[str], queue: asyncio.Queue) -> None:
        body = SendMessageRequest(message=PeerMessage.from_text(request), context_id=context_id)
        try:
            async with self._client.stream(
                "POST",
                f"{self.peer_url}/a2a/message/stream",
                json=body.model_dump(by_alias=True, exclude_none=True),
                headers={"Accept": "text/event-stream"},
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise DelegationError(f"Peer returned HTTP {response.status_code}: {response.text[:200]}")
                async for data in _iter_sse_data(response):
                    try:
                        payload = json.loads(data)
                    except ValueError:
                        raise EventDecodeError(f"Malformed peer frame: {data[:80]!r}") from None
                    await queue.put(parse_update(payload))
            await queue.put(_END)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await queue.put(_StreamFailure(e))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


async def _iter_sse_data(response: httpx.Response) -> AsyncIterator[str]:
    """Yield the joined ``data:`` lines of each SSE frame."""
    lines = []
    async for line in response.aiter_lines():
        if not line:
            if lines:
                yield "\n".join(lines)
                lines = []
            continue
        if line.startswith("data:"):
            lines.append(line[5:].lstrip(" "))
    if lines:
        yield "\n".join(lines)


def _describe(error: Exception) -> str:
    if isinstance(error, httpx.TransportError):
        return f"Peer unreachable: {str(error) or error.__class__.__name__}"
    return str(error) or error.__class__.__name__
