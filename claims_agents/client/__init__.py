"""Client-side stream decoding and chat session."""

from .decoder import StreamDecoder
from .session import ChatClient
from .state import AgentState, ChatMessage, ChatState, DelegationRecord, ThinkingEntry, ToolCallRecord

__all__ = [
    "AgentState",
    "ChatClient",
    "ChatMessage",
    "ChatState",
    "DelegationRecord",
    "StreamDecoder",
    "ThinkingEntry",
    "ToolCallRecord",
]
