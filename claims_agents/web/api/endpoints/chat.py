"""Client-facing chat endpoint streaming task events."""

from __future__ import annotations

import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from ....tasks import flatten_history
from ...errors import APIError
from ...relay import EventRelay
from ...runtime import AgentRuntime
from ..deps import get_runtime

router = APIRouter(tags=["chat"])
logger = logging.getLogger("claims_agents.web.api")


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"] = "user"
    content: str


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Optional[str] = None
    messages: List[ChatMessage] = Field(default_factory=list)
    context_id: Optional[str] = Field(default=None, alias="contextId")

    def prompt(self) -> str:
        if self.messages:
            return flatten_history([m.model_dump() for m in self.messages])
        return self.message or ""


@router.post("/chat")
async def chat(
    request: ChatRequest,
    runtime: AgentRuntime = Depends(get_runtime),
) -> StreamingResponse:
    prompt = request.prompt()
    if not prompt.strip():
        raise APIError(400, "BAD_REQUEST", "A message or a non-empty messages array is required")

    task, bus = runtime.manager.submit(prompt, request.context_id)
    meta = runtime.metadata()
    logger.info(
        "chat_started task_id=%s context_id=%s agent=%s provider=%s model=%s messages=%s",
        task.id,
        task.context_id,
        meta["agent"],
        meta["provider"],
        meta["model"],
        len(request.messages) or 1,
    )
    relay = EventRelay(task.id, bus, cancel=lambda: runtime.manager.cancel_nowait(task.id))
    return StreamingResponse(
        relay.frames(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no", "X-Task-Id": task.id},
    )
