"""Tests for client-side stream decoding and state reconstruction."""

import json

import pytest

from claims_agents.client import ChatState, StreamDecoder
from claims_agents.events import AgentActive, Delegation, Done, Error, Text, Thinking, ToolCall
from claims_agents.web.relay import format_sse_event


def legacy_frame(payload):
    return f"data: {json.dumps(payload)}\n\n"


SCENARIO_A = "".join(
    legacy_frame(payload)
    for payload in [
        {"agent": "detection", "vendor": "anthropic", "status": "working"},
        {"tool": "find_anomalies", "agent": "detection", "status": "start"},
        {"tool": "find_anomalies", "agent": "detection", "status": "end", "duration": 120, "success": True},
        {"text": "3 anomalies found."},
        {},
    ]
).encode()

DELEGATED_RUN = "".join(
    format_sse_event(event)
    for event in [
        AgentActive("detection", "anthropic", "working"),
        Thinking("detection", "Billing for PRV52019 looks off; handing to investigation."),
        ToolCall("detection", "delegate_investigation", "start", call_id="d1"),
        Delegation("detection", "investigation"),
        AgentActive("investigation", "google", "working"),
        ToolCall("investigation", "investigate_provider", "start", call_id="g1"),
        ToolCall("investigation", "investigate_provider", "end", duration=40, success=True, call_id="g1"),
        AgentActive("investigation", "google", "completed"),
        ToolCall("detection", "delegate_investigation", "end", duration=900, success=True, call_id="d1"),
        AgentActive("detection", "anthropic", "completed"),
        Text("Provider Müller Home Health: risk 92 ✓"),
        Done("task_1"),
    ]
).encode()


def decode(*chunks):
    decoder = StreamDecoder(ChatState(clock=lambda: 0.0))
    for chunk in chunks:
        decoder.feed(chunk)
    decoder.close()
    return decoder


class TestScenarioA:
    def test_legacy_frames_rebuild_message(self):
        decoder = decode(SCENARIO_A)
        state = decoder.state

        assert [m.content for m in state.messages] == ["3 anomalies found."]
        calls = state.messages[0].tool_calls
        assert len(calls) == 1
        assert (calls[0].name, calls[0].status, calls[0].duration) == ("find_anomalies", "success", 120)
        assert state.streaming_text == ""
        assert state.agents["detection"].status == "working"
        assert decoder.ignored == 0


class TestChunking:
    @pytest.mark.parametrize("stream", [SCENARIO_A, DELEGATED_RUN], ids=["legacy", "tagged"])
    def test_every_split_point_gives_same_state(self, stream):
        expected = decode(stream).state.snapshot()
        for cut in range(1, len(stream)):
            assert decode(stream[:cut], stream[cut:]).state.snapshot() == expected, f"split at byte {cut}"

    def test_byte_by_byte(self):
        expected = decode(DELEGATED_RUN).state.snapshot()
        chunks = [DELEGATED_RUN[i:i + 1] for i in range(len(DELEGATED_RUN))]
        assert decode(*chunks).state.snapshot() == expected

    def test_split_multibyte_character_is_reassembled(self):
        frame = format_sse_event(Text("Müller ✓")).encode()
        split = frame.index("✓".encode()) + 1
        decoder = decode(frame[:split], frame[split:])
        assert decoder.state.streaming_text == "Müller ✓"

    def test_unterminated_last_line_is_flushed_on_close(self):
        decoder = StreamDecoder()
        assert decoder.feed(b'data: {"text": "tail"}') == []
        assert decoder.close() == [Text("tail")]

    def test_crlf_line_endings(self):
        decoder = decode(b'event: text\r\ndata: {"text": "hi"}\r\n\r\n')
        assert decoder.events == [Text("hi")]


class TestDecoding:
    def test_garbage_frames_are_ignored(self):
        stream = (
            b"data: {not json\n\n"
            b'data: {"foo": "bar"}\n\n'
            b": keep-alive comment\n\n"
            b'data: {"text": "still here"}\n\n'
        )
        decoder = decode(stream)
        assert decoder.ignored == 2
        assert decoder.events == [Text("still here")]

    def test_event_name_hint_resolves_ambiguous_payload(self):
        stream = b'event: error\ndata: {"message": "boom", "taskId": "t"}\n\n'
        assert decode(stream).events == [Error("boom")]

    def test_event_name_resets_after_blank_line(self):
        stream = b'event: error\ndata: {"message": "boom"}\n\ndata: {"taskId": "t"}\n\n'
        assert decode(stream).events == [Error("boom"), Done("t")]

    def test_callback_sees_each_event(self):
        seen = []
        decoder = StreamDecoder(on_event=seen.append)
        decoder.feed(format_sse_event(Text("a")).encode())
        assert seen == [Text("a")]


class TestState:
    def test_delegation_marks_target_working(self):
        state = ChatState()
        state.apply(Delegation("detection", "investigation"))
        assert state.agents["investigation"].status == "working"
        assert state.delegation_active
        assert state.active_delegation.to_agent == "investigation"

    def test_delegated_run_archives_turn(self):
        state = decode(DELEGATED_RUN).state
        message = state.messages[-1]

        assert message.content == "Provider Müller Home Health: risk 92 ✓"
        assert [(c.agent, c.name, c.status) for c in message.tool_calls] == [
            ("detection", "delegate_investigation", "success"),
            ("investigation", "investigate_provider", "success"),
        ]
        assert [(d.from_agent, d.to_agent) for d in message.delegations] == [("detection", "investigation")]
        assert len(message.thinking) == 1
        assert state.tool_calls == []

    def test_finish_request_idles_every_agent(self):
        state = decode(DELEGATED_RUN).state
        state.finish_request()
        assert {agent.status for agent in state.agents.values()} == {"idle"}
        assert not state.delegation_active

    def test_end_matches_start_by_call_id(self):
        state = ChatState()
        state.apply(ToolCall("detection", "find_anomalies", "start", call_id="a"))
        state.apply(ToolCall("detection", "find_anomalies", "start", call_id="b"))
        state.apply(ToolCall("detection", "find_anomalies", "end", duration=7, success=False, call_id="b"))
        assert [(c.call_id, c.status) for c in state.tool_calls] == [("a", "running"), ("b", "error")]

    def test_end_without_call_id_closes_oldest_running(self):
        state = ChatState()
        state.apply(ToolCall("detection", "find_anomalies", "start"))
        state.apply(ToolCall("detection", "find_anomalies", "start"))
        state.apply(ToolCall("detection", "find_anomalies", "end", duration=5, success=True))
        assert [c.status for c in state.tool_calls] == ["success", "running"]

    def test_unmatched_end_creates_record(self):
        state = ChatState()
        state.apply(ToolCall("investigation", "explain_risk_score", "end", duration=9, success=True))
        assert [(c.name, c.status, c.duration) for c in state.tool_calls] == [("explain_risk_score", "success", 9)]

    def test_unknown_agent_is_added(self):
        state = ChatState()
        state.apply(AgentActive("triage", "openai", "working"))
        assert state.agents["triage"].vendor == "openai"

    def test_error_closes_turn_with_partial_text(self):
        state = ChatState()
        state.apply(Text("Partial view."))
        state.apply(Error("Task cancelled"))
        message = state.messages[-1]
        assert (message.content, message.error) == ("Partial view.", "Task cancelled")
        assert state.errors == ["Task cancelled"]

    def test_error_without_text(self):
        state = ChatState()
        state.apply(Error("Task exceeded deadline of 600s"))
        assert state.messages[-1].content == "Error: Task exceeded deadline of 600s"

    def test_reset(self):
        state = decode(DELEGATED_RUN).state
        state.reset()
        assert state.messages == []
        assert state.agents["detection"].status == "idle"
