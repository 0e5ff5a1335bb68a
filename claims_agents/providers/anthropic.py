"""Anthropic Messages API provider implementation."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import anthropic

from .types import FunctionCall, GenerationConfig, LLMResponse, Message, ToolSchema


class AnthropicProvider:
    """Claude provider using the anthropic SDK."""

    def __init__(
        self,
        api_key: str,
        model: str,
        api_base: str = "",
        client: Optional[anthropic.AsyncAnthropic] = None,
    ) -> None:
        self.model = model
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key, base_url=api_base or None)

    async def generate(
        self,
        messages: List[Message],
        tools: Optional[List[ToolSchema]],
        config: GenerationConfig,
    ) -> LLMResponse:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": config.max_tokens,
            "messages": self._to_anthropic_messages(messages),
        }
        if config.system_prompt:
            kwargs["system"] = config.system_prompt
        if config.temperature is not None:
            kwargs["temperature"] = config.temperature
        if tools:
            kwargs["tools"] = [
                {"name": tool.name, "description": tool.description, "input_schema": tool.parameters}
                for tool in tools
            ]

        response = await self.client.messages.create(**kwargs)
        return self._from_anthropic_response(response)

    def _to_anthropic_messages(self, messages: List[Message]) -> List[Dict[str, Any]]:
        result: List[Dict[str, Any]] = []
        for msg in messages:
            if msg.role == "tool":
                blocks = [
                    {
                        "type": "tool_result",
                        "tool_use_id": part.function_response.call_id,
                        "content": json.dumps(part.function_response.response, default=str),
                    }
                    for part in msg.parts
                    if part.function_response
                ]
                result.append({"role": "user", "content": blocks})
                continue

            blocks: List[Dict[str, Any]] = []
            for part in msg.parts:
                if part.text:
                    blocks.append({"type": "text", "text": part.text})
                elif part.function_call:
                    blocks.append(
                        {
                            "type": "tool_use",
                            "id": part.function_call.id,
                            "name": part.function_call.name,
                            "input": part.function_call.arguments or {},
                        }
                    )
            result.append({"role": "assistant" if msg.role == "assistant" else "user", "content": blocks})
        return result

    def _from_anthropic_response(self, response: Any) -> LLMResponse:
        text_parts: List[str] = []
        thinking_parts: List[str] = []
        function_calls: List[FunctionCall] = []

        for block in response.content or []:
            block_type = getattr(block, "type", None)
            if block_type == "text":
                text_parts.append(block.text)
            elif block_type == "thinking":
                thinking_parts.append(getattr(block, "thinking", "") or "")
            elif block_type == "tool_use":
                function_calls.append(
                    FunctionCall(name=block.name, arguments=dict(block.input or {}), id=block.id)
                )

        usage = None
        if getattr(response, "usage", None) is not None:
            usage = {
                "prompt_tokens": int(response.usage.input_tokens or 0),
                "completion_tokens": int(response.usage.output_tokens or 0),
                "total_tokens": int((response.usage.input_tokens or 0) + (response.usage.output_tokens or 0)),
            }

        return LLMResponse(
            text="".join(text_parts),
            function_calls=function_calls,
            stop_reason=getattr(response, "stop_reason", None) or "end_turn",
            thinking="\n".join(p for p in thinking_parts if p) or None,
            usage=usage,
            raw=response,
        )
