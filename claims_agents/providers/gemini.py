"""Gemini provider implementation."""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Dict, List, Optional, cast

from google import genai
from google.genai import types

from .types import FunctionCall, GenerationConfig, LLMResponse, Message, ToolSchema


class GeminiProvider:
    """Google Gemini provider using google-genai SDK."""

    def __init__(self, api_key: str, model: str, include_thoughts: bool = True) -> None:
        self.model = model
        self.include_thoughts = include_thoughts
        self.client = genai.Client(api_key=api_key)

    async def generate(
        self,
        messages: List[Message],
        tools: Optional[List[ToolSchema]],
        config: GenerationConfig,
    ) -> LLMResponse:
        generation_config = types.GenerateContentConfig(
            system_instruction=config.system_prompt if config.system_prompt else None,
            tools=cast(Any, self._to_gemini_tools(tools)),
            max_output_tokens=config.max_tokens,
            temperature=config.temperature,
            thinking_config=types.ThinkingConfig(include_thoughts=True) if self.include_thoughts else None,
        )
        response = await asyncio.to_thread(
            self.client.models.generate_content,
            model=self.model,
            contents=self._to_gemini_contents(messages),
            config=generation_config,
        )
        return self._from_gemini_response(response)

    def _from_gemini_response(self, response: Any) -> LLMResponse:
        if not response.candidates:
            raise RuntimeError("Empty LLM response: no candidates")

        candidate = response.candidates[0]
        parts = candidate.content.parts if candidate.content else []
        function_calls: List[FunctionCall] = []
        text_parts: List[str] = []
        thought_parts: List[str] = []

        for part in parts or []:
            if part.function_call:
                # Gemini does not assign call ids; synthesize one per call.
                function_calls.append(
                    FunctionCall(
                        name=part.function_call.name,
                        arguments=dict(part.function_call.args) if part.function_call.args else {},
                        id=part.function_call.id or f"gemini_{uuid.uuid4().hex[:12]}",
                    )
                )
            elif part.text and getattr(part, "thought", False):
                thought_parts.append(part.text)
            elif part.text:
                text_parts.append(part.text)

        finish_reason = getattr(candidate, "finish_reason", None)
        return LLMResponse(
            text=" ".join(text_parts).strip(),
            function_calls=function_calls,
            stop_reason=str(finish_reason) if finish_reason is not None else None,
            thinking="\n".join(thought_parts).strip() or None,
            raw=response,
        )

    def _to_gemini_contents(self, messages: List[Message]) -> List[types.Content]:
        contents: List[types.Content] = []
        for msg in messages:
            role = msg.role
            if role == "assistant":
                role = "model"
            elif role == "tool":
                role = "user"

            parts: List[types.Part] = []
            for part in msg.parts:
                if part.text:
                    parts.append(types.Part.from_text(text=part.text))
                elif part.function_call:
                    parts.append(
                        types.Part.from_function_call(
                            name=part.function_call.name,
                            args=part.function_call.arguments,
                        )
                    )
                elif part.function_response:
                    parts.append(
                        types.Part.from_function_response(
                            name=part.function_response.name,
                            response=part.function_response.response,
                        )
                    )

            contents.append(types.Content(role=role, parts=parts))
        return contents

    def _to_gemini_tools(self, tools: Optional[List[ToolSchema]]) -> Optional[List[types.Tool]]:
        if not tools:
            return None
        declarations = [self._to_gemini_declaration(tool) for tool in tools]
        return [types.Tool(function_declarations=declarations)]

    def _to_gemini_declaration(self, tool: ToolSchema) -> types.FunctionDeclaration:
        properties: Dict[str, types.Schema] = {}
        for prop_name, prop_def in tool.parameters.get("properties", {}).items():
            properties[prop_name] = self._to_gemini_schema(prop_def or {})

        return types.FunctionDeclaration(
            name=tool.name,
            description=tool.description,
            parameters=types.Schema(
                type=types.Type.OBJECT,
                properties=properties,
                required=tool.parameters.get("required", []),
            ),
        )

    def _to_gemini_schema(self, schema_def: Dict[str, Any]) -> types.Schema:
        type_map = {
            "string": types.Type.STRING,
            "integer": types.Type.INTEGER,
            "number": types.Type.NUMBER,
            "boolean": types.Type.BOOLEAN,
            "object": types.Type.OBJECT,
            "array": types.Type.ARRAY,
        }
        gemini_type = type_map.get(str(schema_def.get("type") or "string").lower(), types.Type.STRING)

        kwargs: Dict[str, Any] = {
            "type": gemini_type,
            "description": schema_def.get("description", ""),
        }
        enum_values = schema_def.get("enum")
        if isinstance(enum_values, list) and enum_values:
            kwargs["enum"] = [str(v) for v in enum_values]
        if gemini_type == types.Type.ARRAY and isinstance(schema_def.get("items"), dict):
            kwargs["items"] = self._to_gemini_schema(schema_def["items"])

        return types.Schema(**kwargs)
