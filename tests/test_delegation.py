"""Tests for streaming delegation to the peer agent."""

import asyncio
import json

import httpx
import pytest

from claims_agents.agents.delegation import EMPTY_REPORT, DelegationClient
from claims_agents.agents.protocol import (
    PeerMessage,
    StatusUpdate,
    TaskSnapshot,
    TaskStatus,
    render_update,
)
from claims_agents.bus import EventBus
from claims_agents.events import AgentActive, Delegation, Text, Thinking, ToolCall
from claims_agents.tasks import TaskState

PEER_URL = "http://investigation.test"


def working(payload):
    text = payload if isinstance(payload, str) else json.dumps(payload.to_wire())
    return StatusUpdate(
        task_id="task_peer",
        context_id="ctx_1",
        status=TaskStatus(state=TaskState.WORKING, message=PeerMessage.from_text(text, role="agent")),
    )


def final(state, text):
    return StatusUpdate(
        task_id="task_peer",
        context_id="ctx_1",
        status=TaskStatus(state=state, message=PeerMessage.from_text(text, role="agent")),
        final=True,
    )


def snapshot():
    return TaskSnapshot(id="task_peer", context_id="ctx_1", status=TaskStatus(state=TaskState.SUBMITTED))


def sse_body(*updates):
    return "".join(render_update(update) for update in updates)


def make_client(handler, **kwargs):
    return DelegationClient(
        PEER_URL,
        "detection",
        "investigation",
        "google",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


def serving(body, status_code=200, seen=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, text=body, headers={"content-type": "text/event-stream"})

    return handler


class TestDelegate:
    @pytest.mark.asyncio
    async def test_forwards_progress_and_returns_final_text(self):
        body = sse_body(
            snapshot(),
            working("Initiating investigation..."),
            working(ToolCall(agent="", tool="investigate_provider", phase="start", call_id="g1")),
            working(Thinking("investigation", "Comparing against peers")),
            working(Text("not forwarded")),
            working(ToolCall(agent="", tool="investigate_provider", phase="end", duration=40, success=True, call_id="g1")),
            final(TaskState.COMPLETED, "PRV52019 carries a critical risk score of 92."),
        )
        bus = EventBus("task_1")
        report = await make_client(serving(body)).delegate("Investigate PRV52019", bus)

        assert report == "PRV52019 carries a critical risk score of 92."
        assert bus.history == [
            Delegation("detection", "investigation"),
            AgentActive("investigation", "google", "working"),
            ToolCall("investigation", "investigate_provider", "start", call_id="g1"),
            Thinking("investigation", "Comparing against peers"),
            ToolCall("investigation", "investigate_provider", "end", duration=40, success=True, call_id="g1"),
            AgentActive("investigation", "google", "completed"),
        ]

    @pytest.mark.asyncio
    async def test_posts_message_and_context(self):
        seen = []
        body = sse_body(snapshot(), final(TaskState.COMPLETED, "ok"))
        await make_client(serving(body, seen=seen)).delegate("Investigate PRV52019", EventBus("t"), context_id="ctx_9")

        request = seen[0]
        assert request.url == f"{PEER_URL}/a2a/message/stream"
        assert request.headers["accept"] == "text/event-stream"
        sent = json.loads(request.content)
        assert sent["contextId"] == "ctx_9"
        assert sent["message"]["parts"] == [{"kind": "text", "text": "Investigate PRV52019"}]

    @pytest.mark.asyncio
    async def test_completed_without_text_uses_placeholder(self):
        body = sse_body(snapshot(), final(TaskState.COMPLETED, ""))
        assert await make_client(serving(body)).delegate("x", EventBus("t")) == EMPTY_REPORT

    @pytest.mark.asyncio
    async def test_small_channel_keeps_order(self):
        tools = [ToolCall(agent="", tool=f"tool_{i}", phase="start", call_id=f"c{i}") for i in range(20)]
        body = sse_body(snapshot(), *[working(t) for t in tools], final(TaskState.COMPLETED, "ok"))
        bus = EventBus("t")
        await make_client(serving(body), channel_size=1).delegate("x", bus)

        forwarded = [event.tool for event in bus.history if isinstance(event, ToolCall)]
        assert forwarded == [f"tool_{i}" for i in range(20)]


class TestDelegateFailures:
    @pytest.mark.asyncio
    async def test_failed_peer_task(self):
        body = sse_body(snapshot(), final(TaskState.FAILED, "GOOGLE_API_KEY not set"))
        bus = EventBus("t")
        report = await make_client(serving(body)).delegate("x", bus)

        assert report == "Error delegating to Investigation Agent: GOOGLE_API_KEY not set"
        assert bus.history[-1] == AgentActive("investigation", "google", "completed")

    @pytest.mark.asyncio
    async def test_stream_without_final_update(self):
        body = sse_body(snapshot(), working("Initiating investigation..."))
        report = await make_client(serving(body)).delegate("x", EventBus("t"))
        assert report == "Error delegating to Investigation Agent: Peer stream ended without a final update"

    @pytest.mark.asyncio
    async def test_malformed_frame(self):
        body = sse_body(snapshot()) + "data: {not json\n\n"
        report = await make_client(serving(body)).delegate("x", EventBus("t"))
        assert report.startswith("Error delegating to Investigation Agent: Malformed peer frame")

    @pytest.mark.asyncio
    async def test_unknown_update_kind(self):
        body = 'data: {"kind": "artifact-update"}\n\n'
        report = await make_client(serving(body)).delegate("x", EventBus("t"))
        assert "Unknown peer update kind" in report

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        report = await make_client(serving("overloaded", status_code=503)).delegate("x", EventBus("t"))
        assert report.startswith("Error delegating to Investigation Agent: Peer returned HTTP 503")

    @pytest.mark.asyncio
    async def test_unreachable_peer(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        bus = EventBus("t")
        report = await make_client(refuse).delegate("x", bus)

        assert report == "Error delegating to Investigation Agent: Peer unreachable: connection refused"
        assert bus.history[0] == Delegation("detection", "investigation")
        assert bus.history[-1] == AgentActive("investigation", "google", "completed")

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def stall(request):
            await asyncio.sleep(10)
            return httpx.Response(200)

        report = await make_client(stall, timeout_seconds=0.05).delegate("x", EventBus("t"))
        assert report == "Error delegating to Investigation Agent: No response within 0.05s"

    @pytest.mark.asyncio
    async def test_custom_display_name(self):
        def refuse(request):
            raise httpx.ConnectError("down", request=request)

        report = await make_client(refuse, display_name="Peer").delegate("x", EventBus("t"))
        assert report.startswith("Error delegating to Peer: ")
