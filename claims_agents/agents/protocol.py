"""Agent-to-agent wire protocol.

A delegating agent posts a :class:`SendMessageRequest` to the peer's
``/a2a/message/stream`` endpoint and receives an SSE stream of updates:

1. one ``task`` snapshot in state ``submitted``;
2. ``status-update`` frames in state ``working``. The first carries plain
   narration; the rest carry one structured progress event each, serialized
   as JSON in the message's single text part;
3. exactly one ``status-update`` with ``final: true``, in state ``completed``
   (its text is the answer) or ``failed`` (its text is the error).
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, AsyncIterator, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..bus import EventBus
from ..config import AgentSettings
from ..errors import EventDecodeError
from ..events import FORWARDABLE_KINDS, Done, Error, Text
from ..tasks import Task, TaskState, utc_now_iso
from .prompts import ROLE_PROFILES

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "0.3.0"
AGENT_VERSION = "1.0.0"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class TextPart(_WireModel):
    kind: Literal["text"] = "text"
    text: str


class PeerMessage(_WireModel):
    message_id: str = Field(default_factory=lambda: uuid.uuid4().hex, alias="messageId")
    role: Literal["user", "agent"] = "user"
    parts: List[TextPart] = Field(default_factory=list)

    @classmethod
    def from_text(cls, text: str, role: str = "user") -> PeerMessage:
        return cls(role=role, parts=[TextPart(text=text)])

    def text(self) -> str:
        return "".join(part.text for part in self.parts)


class SendMessageRequest(_WireModel):
    message: PeerMessage
    context_id: Optional[str] = Field(default=None, alias="contextId")


class TaskStatus(_WireModel):
    state: TaskState
    message: Optional[PeerMessage] = None
    timestamp: str = Field(default_factory=utc_now_iso)


class TaskSnapshot(_WireModel):
    kind: Literal["task"] = "task"
    id: str
    context_id: str = Field(alias="contextId")
    status: TaskStatus


class StatusUpdate(_WireModel):
    kind: Literal["status-update"] = "status-update"
    task_id: str = Field(alias="taskId")
    context_id: str = Field(alias="contextId")
    status: TaskStatus
    final: bool = False

    def text(self) -> str:
        return self.status.message.text() if self.status.message else ""


PeerUpdate = Union[TaskSnapshot, StatusUpdate]


def parse_update(payload: Any) -> PeerUpdate:
    """Validate one decoded ``data:`` payload from a peer stream.

    Raises:
        EventDecodeError: If the payload is not a known update shape.
    """
    if not isinstance(payload, dict):
        raise EventDecodeError(f"Peer update must be an object, got {type(payload).__name__}")
    kind = payload.get("kind")
    try:
        if kind == "task":
            return TaskSnapshot.model_validate(payload)
        if kind == "status-update":
            return StatusUpdate.model_validate(payload)
    except ValidationError as e:
        raise EventDecodeError(f"Malformed {kind} update: {e.errors()[0].get('msg', e)}") from e
    raise EventDecodeError(f"Unknown peer update kind: {kind!r}")


def render_update(update: PeerUpdate) -> str:
    """Render one update using SSE framing."""
    payload = update.model_dump_json(by_alias=True, exclude_none=True)
    return f"event: {update.kind}\ndata: {payload}\n\n"


class PeerStreamAdapter:
    """Turns a task's event stream into peer protocol updates.

    Example:
        adapter = PeerStreamAdapter(task, bus, narration="Initiating investigation...")
        async for update in adapter.updates():
            yield render_update(update)
    """

    def __init__(self, task: Task, bus: EventBus, narration: str = "") -> None:
        self.task = task
        self.bus = bus
        self.narration = narration

    def _update(self, state: TaskState, text: Optional[str], final: bool = False) -> StatusUpdate:
        message = PeerMessage.from_text(text, role="agent") if text is not None else None
        return StatusUpdate(
            task_id=self.task.id,
            context_id=self.task.context_id,
            status=TaskStatus(state=state, message=message),
            final=final,
        )

    async def updates(self) -> AsyncIterator[PeerUpdate]:
        yield TaskSnapshot(
            id=self.task.id,
            context_id=self.task.context_id,
            status=TaskStatus(state=TaskState.SUBMITTED),
        )
        if self.narration:
            yield self._update(TaskState.WORKING, self.narration)

        fragments: List[str] = []
        subscription = self.bus.subscribe(replay=True)
        try:
            async for event in subscription:
                if event.kind in FORWARDABLE_KINDS:
                    yield self._update(TaskState.WORKING, json.dumps(event.to_wire()))
                elif isinstance(event, Text):
                    fragments.append(event.text)
                elif isinstance(event, Done):
                    yield self._update(TaskState.COMPLETED, "".join(fragments), final=True)
                    return
                elif isinstance(event, Error):
                    yield self._update(TaskState.FAILED, event.message, final=True)
                    return
        finally:
            subscription.unsubscribe()

        logger.warning("Task %s stream closed without a terminal event", self.task.id)
        yield self._update(TaskState.FAILED, "Task ended without a result", final=True)


class AgentSkill(BaseModel):
    id: str
    name: str
    description: str
    tags: List[str] = Field(default_factory=list)
    examples: List[str] = Field(default_factory=list)


class AgentCapabilities(BaseModel):
    streaming: bool = True
    push_notifications: bool = Field(default=False, alias="pushNotifications")

    model_config = ConfigDict(populate_by_name=True)


class AgentCard(_WireModel):
    name: str
    description: str
    url: str
    vendor: str
    version: str = AGENT_VERSION
    protocol_version: str = Field(default=PROTOCOL_VERSION, alias="protocolVersion")
    capabilities: AgentCapabilities = Field(default_factory=AgentCapabilities)
    default_input_modes: List[str] = Field(default_factory=lambda: ["text"], alias="defaultInputModes")
    default_output_modes: List[str] = Field(
        default_factory=lambda: ["text", "task-status"], alias="defaultOutputModes"
    )
    skills: List[AgentSkill] = Field(default_factory=list)


def build_agent_card(settings: AgentSettings) -> Dict[str, Any]:
    """Describe an agent role for discovery by its peer."""
    profile = ROLE_PROFILES.get(settings.name, {})
    card = AgentCard(
        name=profile.get("title", settings.display_name),
        description=profile.get("description", ""),
        url=f"{settings.public_url.rstrip('/')}/a2a",
        vendor=settings.vendor,
        skills=[AgentSkill(**skill) for skill in profile.get("skills", [])],
    )
    return card.model_dump(by_alias=True)
