"""API tests for the agent servers and the tool service."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from claims_agents.agents.delegation import DelegationClient
from claims_agents.agents.protocol import StatusUpdate, TaskSnapshot, parse_update
from claims_agents.client import StreamDecoder
from claims_agents.config import build_config
from claims_agents.events import AgentActive, Delegation, Done, Text, ToolCall
from claims_agents.providers.scripted import ScriptedProvider, reply
from claims_agents.tasks import TaskState
from claims_agents.tools import HttpToolInvoker, LocalToolInvoker, sample_tools
from claims_agents.web.app import create_agent_app
from claims_agents.web.tool_app import create_tool_app

from helpers import scripted_factory


class NoDelegation:
    tool_name = "delegate_investigation"

    async def delegate(self, request, bus, context_id=None):
        return "not used"


def agent_app(steps, role="detection", delegation=None, provider=None):
    provider = provider or ScriptedProvider(steps)
    return create_agent_app(
        build_config({}),
        role,
        tools=LocalToolInvoker(sample_tools()),
        reasoner_factory=scripted_factory(provider),
        delegation=delegation or (NoDelegation() if role == "detection" else None),
    )


def decode_chat(body: bytes):
    decoder = StreamDecoder()
    decoder.feed(body)
    decoder.close()
    return decoder


def peer_updates(body: str):
    return [
        parse_update(json.loads(line[len("data: "):]))
        for line in body.splitlines()
        if line.startswith("data: ")
    ]


class TestChatEndpoint:
    def test_streams_events_until_done(self):
        app = agent_app(
            [reply("Scanning.", calls=[("find_anomalies", {"limit": 2}, "c1")]), reply("3 anomalies found.")]
        )
        with TestClient(app) as client:
            response = client.post("/api/chat", json={"message": "Find anomalies"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        task_id = response.headers["x-task-id"]
        assert response.text.startswith("event: agent_active\ndata: ")

        decoder = decode_chat(response.content)
        assert decoder.ignored == 0
        assert decoder.events[-1] == Done(task_id)
        assert [m.content for m in decoder.state.messages] == ["3 anomalies found."]
        assert decoder.state.messages[0].tool_calls[0].status == "success"

    def test_history_is_flattened_for_the_reasoner(self):
        provider = ScriptedProvider([reply("Investigating.")])
        app = agent_app([], provider=provider)
        with TestClient(app) as client:
            client.post(
                "/api/chat",
                json={
                    "messages": [
                        {"role": "user", "content": "Find anomalies"},
                        {"role": "assistant", "content": "PRV52019 stands out."},
                        {"role": "user", "content": "Investigate it"},
                    ]
                },
            )

        first_turn = provider.calls[0][0].parts[0].text
        assert first_turn == "User: Find anomalies\n\nAssistant: PRV52019 stands out.\n\nUser: Investigate it"

    def test_empty_request_rejected(self):
        with TestClient(agent_app([])) as client:
            response = client.post("/api/chat", json={"messages": []})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BAD_REQUEST"

    def test_malformed_request_rejected(self):
        with TestClient(agent_app([])) as client:
            response = client.post("/api/chat", json={"messages": "not a list"})
        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid request payload"

    def test_reasoner_failure_streams_error(self):
        app = agent_app([RuntimeError("invalid x-api-key")])
        with TestClient(app) as client:
            response = client.post("/api/chat", json={"message": "Find anomalies"})

        decoder = decode_chat(response.content)
        assert decoder.events[-1].kind.value == "error"
        assert "invalid x-api-key" in decoder.state.messages[-1].error


class TestTaskEndpoints:
    def test_unknown_task_status(self):
        with TestClient(agent_app([])) as client:
            response = client.get("/api/tasks/task_missing")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_cancel_unknown_task_is_not_an_error(self):
        with TestClient(agent_app([])) as client:
            response = client.post("/api/tasks/task_missing/cancel")
        assert response.status_code == 200
        assert response.json() == {"task_id": "task_missing", "status": "not_running"}


class TestDiscovery:
    def test_healthz(self):
        with TestClient(agent_app([])) as client:
            body = client.get("/healthz").json()
        assert body["status"] == "ok"
        assert body["agent"] == "detection"
        assert body["vendor"] == "anthropic"
        assert body["active_tasks"] == 0
        assert body["stats"]["llm_requests"] == 0

    def test_agent_card(self):
        with TestClient(agent_app([], role="investigation")) as client:
            card = client.get("/.well-known/agent-card.json").json()
        assert card["name"] == "Claims Investigation Agent"
        assert card["url"] == "http://localhost:3003/a2a"

    def test_agent_tools(self):
        with TestClient(agent_app([])) as client:
            body = client.get("/api/tools").json()
        names = [tool["name"] for tool in body["tools"]]
        assert body["agent"] == "detection"
        assert "delegate_investigation" in names
        assert "investigate_provider" not in names


class TestPeerEndpoint:
    def test_message_stream(self):
        app = agent_app(
            [
                reply("Pulling the profile.", calls=[("investigate_provider", {"providerId": "PRV52019"}, "g1")]),
                reply("PRV52019 is critical."),
            ],
            role="investigation",
        )
        request = {
            "message": {"role": "user", "parts": [{"kind": "text", "text": "Investigate PRV52019"}]},
            "contextId": "ctx_1",
        }
        with TestClient(app) as client:
            response = client.post("/a2a/message/stream", json=request)

        updates = peer_updates(response.text)
        assert isinstance(updates[0], TaskSnapshot)
        assert updates[0].context_id == "ctx_1"
        assert updates[1].text() == "Initiating investigation..."
        forwarded = [json.loads(u.text())["kind"] for u in updates[2:-1]]
        assert "tool_call" in forwarded
        last = updates[-1]
        assert isinstance(last, StatusUpdate)
        assert (last.final, last.status.state, last.text()) == (True, TaskState.COMPLETED, "PRV52019 is critical.")

    def test_message_without_text_rejected(self):
        with TestClient(agent_app([], role="investigation")) as client:
            response = client.post("/a2a/message/stream", json={"message": {"role": "user", "parts": []}})
        assert response.status_code == 400


class TestDelegationEndToEnd:
    def test_primary_streams_delegate_progress(self):
        investigation = agent_app(
            [
                reply(calls=[("explain_risk_score", {"providerId": "PRV52019"}, "g1")]),
                reply("PRV52019 scores 92: billing after death."),
            ],
            role="investigation",
        )
        delegation = DelegationClient(
            "http://investigation",
            "detection",
            "investigation",
            "google",
            client=httpx.AsyncClient(transport=httpx.ASGITransport(app=investigation)),
        )
        detection_provider = ScriptedProvider(
            [
                reply("Handing off.", calls=[("delegate_investigation", {"request": "Investigate PRV52019"}, "d1")]),
                reply("Investigation confirms PRV52019 is critical."),
            ]
        )
        detection = agent_app([], delegation=delegation, provider=detection_provider)

        with TestClient(detection) as client:
            response = client.post("/api/chat", json={"message": "Find and investigate the worst provider"})

        events = decode_chat(response.content).events
        assert Delegation("detection", "investigation") in events
        assert AgentActive("investigation", "google", "working") in events
        peer_tools = [e for e in events if isinstance(e, ToolCall) and e.agent == "investigation"]
        assert [(e.tool, e.phase) for e in peer_tools] == [("explain_risk_score", "start"), ("explain_risk_score", "end")]
        assert events[-2:] == [Text("Investigation confirms PRV52019 is critical."), Done(response.headers["x-task-id"])]

        report = detection_provider.calls[1][-1].parts[0].function_response.response
        assert report == {"investigation_report": "PRV52019 scores 92: billing after death."}


class TestToolService:
    def test_call_tool(self):
        with TestClient(create_tool_app()) as client:
            response = client.post("/api/tools/find_anomalies", json={"limit": 2})
        assert response.status_code == 200
        body = response.json()
        assert body["data"]["anomaliesDetected"] == 2
        assert isinstance(body["duration"], int)

    def test_unknown_tool(self):
        with TestClient(create_tool_app()) as client:
            response = client.post("/api/tools/drop_tables", json={})
        assert response.status_code == 404
        assert response.json()["error"]["details"] == {"tool": "drop_tables"}

    def test_tool_error(self):
        with TestClient(create_tool_app()) as client:
            response = client.post("/api/tools/investigate_provider", json={"providerId": "PRV-0000"})
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "TOOL_ERROR"
        assert error["message"] == "Provider not found: PRV-0000"

    def test_list_and_health(self):
        with TestClient(create_tool_app()) as client:
            tools = client.get("/api/tools").json()["tools"]
            health = client.get("/healthz").json()
        assert "get_audit_log" in [tool["name"] for tool in tools]
        assert health["cache"]["cache_size"] == 0

    @pytest.mark.asyncio
    async def test_agents_reach_tool_service_over_http(self):
        transport = httpx.ASGITransport(app=create_tool_app())
        invoker = HttpToolInvoker(
            "http://tools",
            client=httpx.AsyncClient(base_url="http://tools", transport=transport),
        )
        result = await invoker.call("get_provider_details", {"providerId": "PRV52019"})
        assert result.success
        assert result.data["overallRiskLevel"] == "critical"
