"""OpenAI-compatible provider implementation."""

from __future__ import annotations

import json
import uuid
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from .types import FunctionCall, GenerationConfig, LLMResponse, Message, ToolSchema


class OpenAICompatibleProvider:
    """Provider for OpenAI-compatible chat APIs (OpenAI, DeepSeek, local gateways)."""

    def __init__(self, api_key: str, model: str, api_base: str = "", client: Optional[AsyncOpenAI] = None) -> None:
        self.model = model
        self.api_base = api_base or ""
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=api_base or None)

    async def generate(
        self,
        messages: List[Message],
        tools: Optional[List[ToolSchema]],
        config: GenerationConfig,
    ) -> LLMResponse:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": self._to_openai_messages(messages, config.system_prompt),
        }
        if config.max_tokens and config.max_tokens > 0:
            kwargs["max_tokens"] = config.max_tokens
        if config.temperature is not None:
            kwargs["temperature"] = config.temperature
        openai_tools = self._to_openai_tools(tools)
        if openai_tools:
            kwargs["tools"] = openai_tools
            kwargs["tool_choice"] = "auto"

        completion = await self.client.chat.completions.create(**kwargs)
        return self._from_openai_completion(completion)

    def _to_openai_messages(self, messages: List[Message], system_prompt: str) -> List[Dict[str, Any]]:
        result: List[Dict[str, Any]] = []
        if system_prompt:
            result.append({"role": "system", "content": system_prompt})

        for msg in messages:
            if msg.role == "tool":
                for part in msg.parts:
                    if not part.function_response:
                        continue
                    result.append(
                        {
                            "role": "tool",
                            "tool_call_id": part.function_response.call_id or f"tool_{uuid.uuid4().hex}",
                            "content": json.dumps(part.function_response.response, ensure_ascii=False, default=str),
                        }
                    )
                continue

            role = "assistant" if msg.role == "assistant" else "user"
            text_parts = [p.text for p in msg.parts if p.text]
            message: Dict[str, Any] = {"role": role, "content": "\n".join(text_parts)}

            tool_calls = []
            for part in msg.parts:
                if not part.function_call:
                    continue
                tool_calls.append(
                    {
                        "id": part.function_call.id,
                        "type": "function",
                        "function": {
                            "name": part.function_call.name,
                            "arguments": json.dumps(part.function_call.arguments or {}),
                        },
                    }
                )
            if tool_calls:
                message["tool_calls"] = tool_calls
            result.append(message)

        return result

    def _to_openai_tools(self, tools: Optional[List[ToolSchema]]) -> Optional[List[Dict[str, Any]]]:
        if not tools:
            return None
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }
            for tool in tools
        ]

    def _from_openai_completion(self, completion: Any) -> LLMResponse:
        if not completion.choices:
            raise RuntimeError("Empty LLM response: no choices")

        choice = completion.choices[0]
        message = choice.message
        function_calls: List[FunctionCall] = []

        for call in getattr(message, "tool_calls", None) or []:
            function = getattr(call, "function", None)
            if function is None:
                continue
            function_calls.append(
                FunctionCall(
                    name=getattr(function, "name", "") or "",
                    arguments=self._safe_parse_args(getattr(function, "arguments", None)),
                    id=getattr(call, "id", None) or f"call_{uuid.uuid4().hex[:12]}",
                )
            )

        usage_data = getattr(completion, "usage", None)
        usage = None
        if usage_data:
            usage = {
                "prompt_tokens": int(getattr(usage_data, "prompt_tokens", 0) or 0),
                "completion_tokens": int(getattr(usage_data, "completion_tokens", 0) or 0),
                "total_tokens": int(getattr(usage_data, "total_tokens", 0) or 0),
            }

        return LLMResponse(
            text=getattr(message, "content", None) or "",
            function_calls=function_calls,
            stop_reason=getattr(choice, "finish_reason", None),
            usage=usage,
            raw=completion,
        )

    def _safe_parse_args(self, arguments: Any) -> Dict[str, Any]:
        if not arguments:
            return {}
        if isinstance(arguments, dict):
            return arguments
        try:
            parsed = json.loads(arguments)
        except (TypeError, ValueError):
            return {}
        return parsed if isinstance(parsed, dict) else {}
