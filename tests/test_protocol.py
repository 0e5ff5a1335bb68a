"""Tests for the agent-to-agent wire protocol."""

import json

import pytest

from claims_agents.agents.protocol import (
    PeerStreamAdapter,
    SendMessageRequest,
    StatusUpdate,
    TaskSnapshot,
    build_agent_card,
    parse_update,
    render_update,
)
from claims_agents.bus import EventBus
from claims_agents.config import build_config
from claims_agents.errors import EventDecodeError
from claims_agents.events import AgentActive, Done, Error, Text, ToolCall
from claims_agents.tasks import TaskState, create_task


async def collect(adapter):
    return [update async for update in adapter.updates()]


class TestPeerStreamAdapter:
    @pytest.mark.asyncio
    async def test_success_sequence(self):
        task = create_task("Investigate PRV52019", context_id="ctx_1")
        bus = EventBus(task.id)
        bus.publish(AgentActive("investigation", "google", "working"))
        bus.publish(ToolCall("investigation", "investigate_provider", "start", call_id="g1"))
        bus.publish(Text("PRV52019 is "))
        bus.publish(Text("critical."))
        bus.publish(Done(task.id))

        updates = await collect(PeerStreamAdapter(task, bus, narration="Initiating investigation..."))

        assert isinstance(updates[0], TaskSnapshot)
        assert updates[0].status.state == TaskState.SUBMITTED
        assert updates[1].text() == "Initiating investigation..."
        assert json.loads(updates[2].text())["kind"] == "agent_active"
        assert json.loads(updates[3].text())["tool"] == "investigate_provider"
        last = updates[-1]
        assert (last.final, last.status.state, last.text()) == (True, TaskState.COMPLETED, "PRV52019 is critical.")
        assert len(updates) == 5
        assert all(update.context_id == "ctx_1" for update in updates)

    @pytest.mark.asyncio
    async def test_error_becomes_failed_final(self):
        task = create_task("x")
        bus = EventBus(task.id)
        bus.publish(Text("partial"))
        bus.publish(Error("GOOGLE_API_KEY not set"))

        last = (await collect(PeerStreamAdapter(task, bus)))[-1]
        assert (last.final, last.status.state, last.text()) == (True, TaskState.FAILED, "GOOGLE_API_KEY not set")

    @pytest.mark.asyncio
    async def test_closed_bus_without_terminal_event(self):
        task = create_task("x")
        bus = EventBus(task.id)
        bus.close()

        updates = await collect(PeerStreamAdapter(task, bus))
        assert len(updates) == 2
        assert updates[-1].status.state == TaskState.FAILED
        assert updates[-1].text() == "Task ended without a result"


class TestParseUpdate:
    def test_rendered_update_parses_back(self):
        task = create_task("x", context_id="ctx_1")
        snapshot = TaskSnapshot(id=task.id, context_id=task.context_id, status={"state": "submitted"})
        frame = render_update(snapshot)

        assert frame.startswith("event: task\ndata: ")
        payload = json.loads(frame.split("data: ", 1)[1])
        assert payload["contextId"] == "ctx_1"
        assert parse_update(payload) == snapshot

    def test_status_update_aliases(self):
        update = parse_update(
            {
                "kind": "status-update",
                "taskId": "t1",
                "contextId": "c1",
                "status": {"state": "completed", "message": {"role": "agent", "parts": [{"kind": "text", "text": "ok"}]}},
                "final": True,
            }
        )
        assert isinstance(update, StatusUpdate)
        assert update.text() == "ok"

    @pytest.mark.parametrize(
        "payload",
        [
            ["not", "an", "object"],
            {"kind": "artifact-update"},
            {"kind": "status-update", "taskId": "t1"},
            {"kind": "status-update", "taskId": "t1", "contextId": "c1", "status": {"state": "paused"}},
        ],
    )
    def test_invalid_updates_rejected(self, payload):
        with pytest.raises(EventDecodeError):
            parse_update(payload)

    def test_request_accepts_camel_case(self):
        request = SendMessageRequest.model_validate(
            {"message": {"role": "user", "parts": [{"kind": "text", "text": "hi"}]}, "contextId": "ctx_2"}
        )
        assert request.context_id == "ctx_2"
        assert request.message.text() == "hi"


class TestAgentCard:
    def test_card_points_at_peer_endpoint(self):
        config = build_config({"agents": {"investigation": {"public_url": "https://inv.example.com/"}}})
        card = build_agent_card(config.delegate)

        assert card["name"] == "Claims Investigation Agent"
        assert card["url"] == "https://inv.example.com/a2a"
        assert card["vendor"] == "google"
        assert card["protocolVersion"] == "0.3.0"
        assert card["capabilities"]["streaming"] is True
        assert [skill["id"] for skill in card["skills"]]
