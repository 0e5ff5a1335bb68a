"""Tests for vendor message mapping and provider construction."""

from types import SimpleNamespace

import pytest

from claims_agents.providers import create_provider
from claims_agents.providers.anthropic import AnthropicProvider
from claims_agents.providers.gemini import GeminiProvider
from claims_agents.providers.openai_compat import OpenAICompatibleProvider
from claims_agents.providers.scripted import ScriptedProvider
from claims_agents.providers.types import (
    FunctionCall,
    FunctionResponse,
    GenerationConfig,
    Message,
    ToolSchema,
)

TRANSCRIPT = [
    Message.user("Find anomalies"),
    Message.assistant("Scanning.", [FunctionCall("find_anomalies", {"limit": 3}, id="toolu_1")]),
    Message.tool_response([FunctionResponse("find_anomalies", {"anomaliesDetected": 3}, call_id="toolu_1")]),
]

TOOLS = [
    ToolSchema(
        name="find_anomalies",
        description="Find anomalies",
        parameters={"type": "object", "properties": {"limit": {"type": "number"}}, "required": []},
    )
]


class RecordingEndpoint:
    def __init__(self, response):
        self.response = response
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        return self.response


class TestAnthropicProvider:
    @pytest.mark.asyncio
    async def test_request_and_response_mapping(self):
        response = SimpleNamespace(
            content=[
                SimpleNamespace(type="thinking", thinking="Deceased claims matter most."),
                SimpleNamespace(type="text", text="Checking deceased claims."),
                SimpleNamespace(type="tool_use", id="toolu_2", name="check_deceased_claims", input={"limit": 5}),
            ],
            stop_reason="tool_use",
            usage=SimpleNamespace(input_tokens=100, output_tokens=20),
        )
        endpoint = RecordingEndpoint(response)
        provider = AnthropicProvider("sk-test", "claude-sonnet-4-20250514", client=SimpleNamespace(messages=endpoint))

        result = await provider.generate(TRANSCRIPT, TOOLS, GenerationConfig(system_prompt="You detect fraud."))

        sent = endpoint.kwargs
        assert sent["system"] == "You detect fraud."
        assert sent["tools"][0]["input_schema"] == TOOLS[0].parameters
        assert [m["role"] for m in sent["messages"]] == ["user", "assistant", "user"]
        assert sent["messages"][1]["content"][1] == {
            "type": "tool_use",
            "id": "toolu_1",
            "name": "find_anomalies",
            "input": {"limit": 3},
        }
        tool_result = sent["messages"][2]["content"][0]
        assert (tool_result["type"], tool_result["tool_use_id"]) == ("tool_result", "toolu_1")

        assert result.text == "Checking deceased claims."
        assert result.thinking == "Deceased claims matter most."
        assert result.function_calls == [FunctionCall("check_deceased_claims", {"limit": 5}, id="toolu_2")]
        assert result.usage["total_tokens"] == 120

    @pytest.mark.asyncio
    async def test_temperature_omitted_when_unset(self):
        endpoint = RecordingEndpoint(SimpleNamespace(content=[], stop_reason="end_turn", usage=None))
        provider = AnthropicProvider("sk-test", "claude", client=SimpleNamespace(messages=endpoint))
        await provider.generate([Message.user("hi")], None, GenerationConfig(temperature=None))
        assert "temperature" not in endpoint.kwargs
        assert "tools" not in endpoint.kwargs


class TestOpenAICompatibleProvider:
    @pytest.mark.asyncio
    async def test_tool_messages_and_bad_arguments(self):
        completion = SimpleNamespace(
            choices=[
                SimpleNamespace(
                    finish_reason="tool_calls",
                    message=SimpleNamespace(
                        content=None,
                        tool_calls=[
                            SimpleNamespace(id="c1", function=SimpleNamespace(name="find_anomalies", arguments="{bad")),
                        ],
                    ),
                )
            ],
            usage=None,
        )
        endpoint = RecordingEndpoint(completion)
        client = SimpleNamespace(chat=SimpleNamespace(completions=endpoint))
        provider = OpenAICompatibleProvider("sk-test", "gpt-4o", client=client)

        result = await provider.generate(TRANSCRIPT, TOOLS, GenerationConfig(system_prompt="sys"))

        messages = endpoint.kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "sys"}
        assert messages[2]["tool_calls"][0]["function"]["arguments"] == '{"limit": 3}'
        assert messages[3]["role"] == "tool"
        assert messages[3]["tool_call_id"] == "toolu_1"
        assert endpoint.kwargs["tool_choice"] == "auto"
        assert result.function_calls == [FunctionCall("find_anomalies", {}, id="c1")]
        assert result.text == ""


class TestGeminiProvider:
    def test_response_mapping_synthesizes_call_ids(self):
        provider = GeminiProvider(api_key="g-test", model="gemini-2.5-flash")
        response = SimpleNamespace(
            candidates=[
                SimpleNamespace(
                    finish_reason="STOP",
                    content=SimpleNamespace(
                        parts=[
                            SimpleNamespace(text="Weighing peers.", thought=True, function_call=None),
                            SimpleNamespace(text="Pulling the profile.", thought=False, function_call=None),
                            SimpleNamespace(
                                text=None,
                                thought=False,
                                function_call=SimpleNamespace(
                                    name="investigate_provider", args={"providerId": "PRV52019"}, id=None
                                ),
                            ),
                        ]
                    ),
                )
            ]
        )
        result = provider._from_gemini_response(response)

        assert result.text == "Pulling the profile."
        assert result.thinking == "Weighing peers."
        call = result.function_calls[0]
        assert (call.name, call.arguments) == ("investigate_provider", {"providerId": "PRV52019"})
        assert call.id.startswith("gemini_")

    def test_empty_candidates_rejected(self):
        provider = GeminiProvider(api_key="g-test", model="gemini-2.5-flash")
        with pytest.raises(RuntimeError, match="no candidates"):
            provider._from_gemini_response(SimpleNamespace(candidates=[]))

    def test_tool_declaration(self):
        provider = GeminiProvider(api_key="g-test", model="gemini-2.5-flash")
        declaration = provider._to_gemini_declaration(TOOLS[0])
        assert declaration.name == "find_anomalies"
        assert set(declaration.parameters.properties) == {"limit"}

    def test_roles_mapped(self):
        provider = GeminiProvider(api_key="g-test", model="gemini-2.5-flash")
        contents = provider._to_gemini_contents(TRANSCRIPT)
        assert [c.role for c in contents] == ["user", "model", "user"]


class TestCreateProvider:
    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            create_provider("watson", api_key="x", model="m")

    def test_missing_key_names_env_var(self):
        with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
            create_provider("anthropic", api_key="${ANTHROPIC_API_KEY}", model="claude")

    def test_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-env")
        provider = create_provider("anthropic", api_key="", model="claude-sonnet-4-20250514")
        assert isinstance(provider, AnthropicProvider)
        assert provider.model == "claude-sonnet-4-20250514"

    def test_stub_needs_no_key(self):
        provider = create_provider("stub", api_key="", model="")
        assert isinstance(provider, ScriptedProvider)
        assert provider.model == "stub"
