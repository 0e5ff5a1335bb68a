"""Tests for SSE framing and the event relay."""

import json

import pytest

from claims_agents.bus import EventBus
from claims_agents.errors import RelayTransportError
from claims_agents.events import AgentActive, Done, Error, Text, ToolCall
from claims_agents.web.relay import EventRelay, format_sse_event


def parse_frame(frame):
    head, data = frame.rstrip("\n").split("\n")
    return head[len("event: "):], json.loads(data[len("data: "):])


class TestFormat:
    def test_frame_layout(self):
        frame = format_sse_event(Text("3 anomalies found."))
        assert frame == 'event: text\ndata: {"kind":"text","text":"3 anomalies found."}\n\n'

    def test_event_name_matches_kind(self):
        name, payload = parse_frame(format_sse_event(ToolCall("detection", "find_anomalies", "end", 120, True)))
        assert name == "tool_call"
        assert payload["duration"] == 120
        assert payload["success"] is True

    def test_non_ascii_kept_literal(self):
        frame = format_sse_event(Text("Müller → flagged"))
        assert "Müller → flagged" in frame


class TestFrames:
    @pytest.mark.asyncio
    async def test_stops_after_terminal_event(self):
        bus = EventBus("task_1")
        bus.publish(AgentActive("detection", "anthropic", "working"))
        bus.publish(Text("answer"))
        bus.publish(Done("task_1"))
        bus.publish(Text("after terminal"))

        relay = EventRelay("task_1", bus)
        frames = [frame async for frame in relay.frames()]

        assert [parse_frame(f)[0] for f in frames] == ["agent_active", "text", "done"]
        assert relay.finished
        assert relay.sent == 3

    @pytest.mark.asyncio
    async def test_closed_bus_ends_stream(self):
        bus = EventBus("task_1")
        bus.publish(Text("partial"))
        bus.close()
        relay = EventRelay("task_1", bus, cancel=lambda: pytest.fail("should not cancel"))
        frames = [frame async for frame in relay.frames()]
        assert len(frames) == 1

    @pytest.mark.asyncio
    async def test_disconnect_cancels_task(self):
        cancelled = []
        bus = EventBus("task_1")
        bus.publish(AgentActive("detection", "anthropic", "working"))
        relay = EventRelay("task_1", bus, cancel=lambda: cancelled.append(True) or True)

        stream = relay.frames()
        await stream.__anext__()
        await stream.aclose()

        assert cancelled == [True]
        assert bus.history == [AgentActive("detection", "anthropic", "working")]

    @pytest.mark.asyncio
    async def test_disconnect_without_cancel_publishes_one_error(self):
        bus = EventBus("task_1")
        bus.publish(AgentActive("detection", "anthropic", "working"))
        relay = EventRelay("task_1", bus, cancel=lambda: False)

        stream = relay.frames()
        await stream.__anext__()
        await stream.aclose()

        assert bus.last() == Error("Relay stopped: client disconnected")


class TestPipe:
    @pytest.mark.asyncio
    async def test_writes_every_frame(self):
        bus = EventBus("task_1")
        bus.publish(Text("a"))
        bus.publish(Done("task_1"))
        written = []

        async def send(frame):
            written.append(frame)

        assert await EventRelay("task_1", bus).pipe(send) == 2
        assert written[-1].startswith("event: done\n")

    @pytest.mark.asyncio
    async def test_failed_write_abandons(self):
        bus = EventBus("task_1")
        bus.publish(Text("a"))
        bus.publish(Text("b"))
        written = []

        async def send(frame):
            if written:
                raise RelayTransportError("peer reset")
            written.append(frame)

        relay = EventRelay("task_1", bus)
        assert await relay.pipe(send) == 1
        assert bus.last() == Error("Relay stopped: peer reset")

    @pytest.mark.asyncio
    async def test_abandon_after_terminal_adds_nothing(self):
        bus = EventBus("task_1")
        bus.publish(Done("task_1"))

        async def send(frame):
            raise ConnectionError("gone")

        await EventRelay("task_1", bus).pipe(send)
        assert bus.history == [Done("task_1")]
