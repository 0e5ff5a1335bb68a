"""Client-side projection of a task's event stream."""

from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ..events import AgentActive, Delegation, Done, Error, Event, Text, Thinking, ToolCall

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class AgentState:
    id: str
    name: str
    vendor: str
    model: str = ""
    status: str = "idle"  # idle | working | completed


def default_agents() -> Dict[str, AgentState]:
    return {
        "detection": AgentState("detection", "Detection Agent", "anthropic", "Claude"),
        "investigation": AgentState("investigation", "Investigation Agent", "google", "Gemini"),
    }


@dataclass
class ToolCallRecord:
    id: str
    name: str
    agent: str
    start_time: float
    status: str = "running"  # running | success | error
    duration: Optional[int] = None
    call_id: Optional[str] = None


@dataclass(frozen=True)
class DelegationRecord:
    id: str
    from_agent: str
    to_agent: str
    timestamp: float


@dataclass
class ThinkingEntry:
    id: str
    agent: str
    text: str
    timestamp: float


@dataclass
class ChatMessage:
    """One finalized conversation message.

    Assistant messages carry the tool calls, thinking and delegations of the
    turn that produced them.
    """

    id: str
    role: str  # user | assistant
    content: str
    timestamp: float
    tool_calls: List[ToolCallRecord] = field(default_factory=list)
    thinking: List[ThinkingEntry] = field(default_factory=list)
    delegations: List[DelegationRecord] = field(default_factory=list)
    error: Optional[str] = None


class ChatState:
    """Agent statuses, per-turn activity and finalized messages.

    Events are applied in receipt order. ``Done`` (or ``Error``) closes the
    current turn: the buffered text becomes one assistant message and the
    turn's tool calls, thinking and delegations move onto it. Agent statuses
    are only reset by :meth:`finish_request`.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self.clock = clock or time.time
        self._ids = itertools.count(1)
        self.agents: Dict[str, AgentState] = default_agents()
        self.tool_calls: List[ToolCallRecord] = []
        self.thinking: List[ThinkingEntry] = []
        self.delegations: List[DelegationRecord] = []
        self.messages: List[ChatMessage] = []
        self.errors: List[str] = []
        self._fragments: List[str] = []

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}_{next(self._ids)}"

    @property
    def streaming_text(self) -> str:
        return "".join(self._fragments)

    @property
    def delegation_active(self) -> bool:
        if not self.delegations:
            return False
        return any(agent.status == "working" for agent in self.agents.values())

    @property
    def active_delegation(self) -> Optional[DelegationRecord]:
        return self.delegations[-1] if self.delegation_active else None

    def add_user_message(self, text: str) -> ChatMessage:
        message = ChatMessage(id=self._next_id("msg"), role="user", content=text, timestamp=self.clock())
        self.messages.append(message)
        return message

    def apply(self, event: Event) -> None:
        if isinstance(event, AgentActive):
            self._agent(event.agent, event.vendor).status = event.status
        elif isinstance(event, ToolCall):
            self._apply_tool_call(event)
        elif isinstance(event, Delegation):
            self.delegations.append(
                DelegationRecord(
                    id=self._next_id("dlg"),
                    from_agent=event.from_agent,
                    to_agent=event.to_agent,
                    timestamp=self.clock(),
                )
            )
            self._agent(event.to_agent).status = "working"
        elif isinstance(event, Thinking):
            self.thinking.append(
                ThinkingEntry(id=self._next_id("thk"), agent=event.agent, text=event.text, timestamp=self.clock())
            )
        elif isinstance(event, Text):
            self._fragments.append(event.text)
        elif isinstance(event, Done):
            self._close_turn()
        elif isinstance(event, Error):
            self.fail(event.message)

    def fail(self, message: str) -> None:
        """Surface an error and close the turn with whatever text was streamed."""
        logger.warning("Stream error: %s", message)
        self.errors.append(message)
        self._close_turn(error=message)

    def _agent(self, agent_id: str, vendor: str = "") -> AgentState:
        agent = self.agents.get(agent_id)
        if agent is None:
            agent = AgentState(agent_id, agent_id.replace("_", " ").title(), vendor)
            self.agents[agent_id] = agent
        return agent

    def _apply_tool_call(self, event: ToolCall) -> None:
        agent = event.agent or "detection"
        if event.phase == "start":
            self.tool_calls.append(
                ToolCallRecord(
                    id=self._next_id("tool"),
                    name=event.tool,
                    agent=agent,
                    start_time=self.clock(),
                    call_id=event.call_id,
                )
            )
            return

        record = self._running_call(event.tool, agent, event.call_id)
        if record is None:
            logger.debug("End of %s without a matching start", event.tool)
            record = ToolCallRecord(
                id=self._next_id("tool"),
                name=event.tool,
                agent=agent,
                start_time=self.clock(),
                call_id=event.call_id,
            )
            self.tool_calls.append(record)
        record.status = "success" if event.success else "error"
        record.duration = event.duration

    def _running_call(self, tool: str, agent: str, call_id: Optional[str]) -> Optional[ToolCallRecord]:
        running = [r for r in self.tool_calls if r.status == "running" and r.agent == agent]
        if call_id:
            for record in running:
                if record.call_id == call_id:
                    return record
        for record in running:
            if record.name == tool and (not call_id or not record.call_id):
                return record
        return None

    def _close_turn(self, error: Optional[str] = None) -> None:
        content = self.streaming_text
        if content or error:
            self.messages.append(
                ChatMessage(
                    id=self._next_id("msg"),
                    role="assistant",
                    content=content or f"Error: {error}",
                    timestamp=self.clock(),
                    tool_calls=self.tool_calls,
                    thinking=self.thinking,
                    delegations=self.delegations,
                    error=error,
                )
            )
        self._fragments = []
        self.tool_calls = []
        self.thinking = []
        self.delegations = []

    def finish_request(self) -> None:
        """Return both agents to idle; called after every request, whatever its outcome."""
        for agent in self.agents.values():
            agent.status = "idle"

    def reset(self) -> None:
        """Forget the conversation."""
        self.agents = default_agents()
        self.tool_calls = []
        self.thinking = []
        self.delegations = []
        self.messages = []
        self.errors = []
        self._fragments = []

    def snapshot(self) -> Dict[str, Any]:
        """Timestamp- and id-free view for comparing two reconstructions."""

        def calls(records: List[ToolCallRecord]) -> List[Dict[str, Any]]:
            return [
                {"name": r.name, "agent": r.agent, "status": r.status, "duration": r.duration, "call_id": r.call_id}
                for r in records
            ]

        return {
            "agents": {key: agent.status for key, agent in self.agents.items()},
            "tool_calls": calls(self.tool_calls),
            "thinking": [(t.agent, t.text) for t in self.thinking],
            "delegations": [(d.from_agent, d.to_agent) for d in self.delegations],
            "delegation_active": self.delegation_active,
            "streaming_text": self.streaming_text,
            "messages": [
                {
                    "role": m.role,
                    "content": m.content,
                    "error": m.error,
                    "tool_calls": calls(m.tool_calls),
                    "thinking": [(t.agent, t.text) for t in m.thinking],
                    "delegations": [(d.from_agent, d.to_agent) for d in m.delegations],
                }
                for m in self.messages
            ],
            "errors": list(self.errors),
        }
