"""Progress events emitted while a task runs.

Every event is a small frozen dataclass with a ``kind`` discriminator. The
wire form is a flat JSON object::

    {"kind": "agent_active", "agent": "detection", "vendor": "anthropic", "status": "working"}
    {"kind": "tool_call", "agent": "detection", "tool": "find_anomalies", "status": "end",
     "duration": 120, "success": true, "callId": "toolu_01"}
    {"kind": "delegation", "from": "detection", "to": "investigation"}
    {"kind": "thinking", "agent": "detection", "text": "..."}
    {"kind": "text", "text": "..."}
    {"kind": "done", "taskId": "task_..."}
    {"kind": "error", "message": "..."}

Producers that predate the ``kind`` field are still understood through
:func:`classify_legacy`, which infers the variant from the fields present.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from .errors import EventDecodeError


class EventKind(str, Enum):
    AGENT_ACTIVE = "agent_active"
    TOOL_CALL = "tool_call"
    DELEGATION = "delegation"
    THINKING = "thinking"
    TEXT = "text"
    DONE = "done"
    ERROR = "error"


AGENT_STATUSES = ("working", "completed", "idle")
TOOL_PHASES = ("start", "end")

# Kinds a delegate may contribute to the delegating task's stream.
FORWARDABLE_KINDS = frozenset(
    {EventKind.TOOL_CALL, EventKind.DELEGATION, EventKind.AGENT_ACTIVE, EventKind.THINKING}
)


@dataclass(frozen=True)
class AgentActive:
    agent: str
    vendor: str
    status: str

    kind = EventKind.AGENT_ACTIVE

    def to_wire(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "agent": self.agent,
            "vendor": self.vendor,
            "status": self.status,
        }


@dataclass(frozen=True)
class ToolCall:
    agent: str
    tool: str
    phase: str
    duration: Optional[int] = None
    success: Optional[bool] = None
    call_id: Optional[str] = None

    kind = EventKind.TOOL_CALL

    def to_wire(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "kind": self.kind.value,
            "agent": self.agent,
            "tool": self.tool,
            "status": self.phase,
        }
        if self.duration is not None:
            payload["duration"] = self.duration
        if self.success is not None:
            payload["success"] = self.success
        if self.call_id:
            payload["callId"] = self.call_id
        return payload


@dataclass(frozen=True)
class Delegation:
    from_agent: str
    to_agent: str

    kind = EventKind.DELEGATION

    def to_wire(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "from": self.from_agent, "to": self.to_agent}


@dataclass(frozen=True)
class Thinking:
    agent: str
    text: str

    kind = EventKind.THINKING

    def to_wire(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "agent": self.agent, "text": self.text}


@dataclass(frozen=True)
class Text:
    text: str

    kind = EventKind.TEXT

    def to_wire(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "text": self.text}


@dataclass(frozen=True)
class Done:
    task_id: Optional[str] = None

    kind = EventKind.DONE

    def to_wire(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kind": self.kind.value}
        if self.task_id:
            payload["taskId"] = self.task_id
        return payload


@dataclass(frozen=True)
class Error:
    message: str

    kind = EventKind.ERROR

    def to_wire(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message}


Event = Union[AgentActive, ToolCall, Delegation, Thinking, Text, Done, Error]

TERMINAL_KINDS = frozenset({EventKind.DONE, EventKind.ERROR})


def is_terminal(event: Event) -> bool:
    """True for the events that end a task's stream (Done and Error)."""
    return event.kind in TERMINAL_KINDS


def event_from_wire(payload: Any) -> Event:
    """Build an Event from a payload carrying an explicit ``kind``.

    Raises:
        EventDecodeError: If the payload is not an object, has no known kind,
            or lacks a field the kind requires.
    """
    if not isinstance(payload, dict):
        raise EventDecodeError(f"Event payload must be an object, got {type(payload).__name__}")
    raw_kind = payload.get("kind")
    try:
        kind = EventKind(raw_kind)
    except ValueError:
        raise EventDecodeError(f"Unknown event kind: {raw_kind!r}") from None
    return _build(kind, payload)


def classify_legacy(payload: Dict[str, Any]) -> Optional[EventKind]:
    """Infer the kind of a payload that carries no discriminator.

    Rules are applied in order and the first match wins:

    1. agent + vendor + status, no tool  -> agent_active
    2. tool + status                     -> tool_call
    3. from + to                         -> delegation
    4. agent + text, no tool             -> thinking
    5. text, no agent                    -> text
    6. taskId, or empty object           -> done
    7. message                           -> error
    """
    keys = set(payload)
    if {"agent", "vendor", "status"} <= keys and "tool" not in keys:
        return EventKind.AGENT_ACTIVE
    if {"tool", "status"} <= keys:
        return EventKind.TOOL_CALL
    if {"from", "to"} <= keys:
        return EventKind.DELEGATION
    if {"agent", "text"} <= keys and "tool" not in keys:
        return EventKind.THINKING
    if "text" in keys and "agent" not in keys:
        return EventKind.TEXT
    if "taskId" in keys or not keys:
        return EventKind.DONE
    if "message" in keys:
        return EventKind.ERROR
    return None


def decode_payload(payload: Any, hint: Optional[str] = None) -> Event:
    """Decode a wire payload: explicit kind first, then ``hint``, then legacy rules."""
    if not isinstance(payload, dict):
        raise EventDecodeError(f"Event payload must be an object, got {type(payload).__name__}")
    if "kind" in payload:
        return event_from_wire(payload)
    kind: Optional[EventKind] = None
    if hint:
        try:
            kind = EventKind(hint)
        except ValueError:
            kind = None
    if kind is None:
        kind = classify_legacy(payload)
    if kind is None:
        raise EventDecodeError(f"Unclassifiable payload with keys {sorted(payload)}")
    return _build(kind, payload)


def _build(kind: EventKind, payload: Dict[str, Any]) -> Event:
    try:
        if kind is EventKind.AGENT_ACTIVE:
            status = str(payload["status"])
            if status not in AGENT_STATUSES:
                status = "idle"
            return AgentActive(
                agent=str(payload["agent"]),
                vendor=str(payload.get("vendor") or ""),
                status=status,
            )
        if kind is EventKind.TOOL_CALL:
            phase = str(payload["status"])
            if phase not in TOOL_PHASES:
                raise EventDecodeError(f"Unknown tool phase: {phase!r}")
            duration = payload.get("duration")
            success = payload.get("success")
            return ToolCall(
                agent=str(payload.get("agent") or ""),
                tool=str(payload["tool"]),
                phase=phase,
                duration=int(duration) if isinstance(duration, (int, float)) else None,
                success=bool(success) if success is not None else None,
                call_id=payload.get("callId") or None,
            )
        if kind is EventKind.DELEGATION:
            return Delegation(from_agent=str(payload["from"]), to_agent=str(payload["to"]))
        if kind is EventKind.THINKING:
            return Thinking(agent=str(payload["agent"]), text=str(payload["text"]))
        if kind is EventKind.TEXT:
            return Text(text=str(payload["text"]))
        if kind is EventKind.DONE:
            task_id = payload.get("taskId")
            return Done(task_id=str(task_id) if task_id else None)
        return Error(message=str(payload.get("message") or "Unknown error"))
    except KeyError as e:
        raise EventDecodeError(f"{kind.value} payload is missing field {e.args[0]!r}") from None
