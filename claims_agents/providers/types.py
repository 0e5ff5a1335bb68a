"""Provider-agnostic message and tool types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class FunctionCall:
    """Represents a tool/function call from the model."""

    name: str
    arguments: Dict[str, Any]
    id: Optional[str] = None


@dataclass
class FunctionResponse:
    """Represents a tool/function response sent back to the model."""

    name: str
    response: Dict[str, Any]
    call_id: Optional[str] = None


@dataclass
class MessagePart:
    """A part of a message: text, tool call, or tool response."""

    text: Optional[str] = None
    function_call: Optional[FunctionCall] = None
    function_response: Optional[FunctionResponse] = None

    @classmethod
    def from_text(cls, text: str) -> "MessagePart":
        return cls(text=text)

    @classmethod
    def from_function_call(cls, call: FunctionCall) -> "MessagePart":
        return cls(function_call=call)

    @classmethod
    def from_function_response(cls, response: FunctionResponse) -> "MessagePart":
        return cls(function_response=response)


@dataclass
class Message:
    """Provider-agnostic chat message."""

    role: str  # "user" | "assistant" | "tool"
    parts: List[MessagePart] = field(default_factory=list)

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(role="user", parts=[MessagePart.from_text(text)])

    @classmethod
    def assistant(cls, text: str, calls: Optional[List[FunctionCall]] = None) -> "Message":
        parts = [MessagePart.from_text(text)] if text else []
        parts.extend(MessagePart.from_function_call(c) for c in calls or [])
        return cls(role="assistant", parts=parts)

    @classmethod
    def tool_response(cls, responses: List[FunctionResponse]) -> "Message":
        return cls(role="tool", parts=[MessagePart.from_function_response(r) for r in responses])


@dataclass
class ToolSchema:
    """Tool schema in OpenAI-compatible JSON Schema format."""

    name: str
    description: str
    parameters: Dict[str, Any]


@dataclass
class GenerationConfig:
    """Common generation settings passed to providers."""

    system_prompt: str = ""
    max_tokens: int = 4096
    temperature: Optional[float] = 0.7


@dataclass
class LLMResponse:
    """Normalized response from a provider.

    ``thinking`` holds a vendor reasoning trace when the backend exposes one
    separately from the narrative text.
    """

    text: str = ""
    function_calls: List[FunctionCall] = field(default_factory=list)
    stop_reason: Optional[str] = None
    thinking: Optional[str] = None
    usage: Optional[Dict[str, int]] = None
    raw: Any = None
