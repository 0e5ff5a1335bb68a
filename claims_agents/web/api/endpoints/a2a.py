"""Peer-facing endpoints: agent card, streaming message and cancel."""

from __future__ import annotations

import logging
from typing import Any, AsyncGenerator, Dict

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import StreamingResponse

from ....agents.prompts import ROLE_PROFILES
from ....agents.protocol import PeerStreamAdapter, SendMessageRequest, StatusUpdate, build_agent_card, render_update
from ...errors import APIError
from ...runtime import AgentRuntime
from ..deps import get_runtime

router = APIRouter(tags=["a2a"])
logger = logging.getLogger("claims_agents.web.api")


@router.get("/.well-known/agent-card.json")
async def agent_card(runtime: AgentRuntime = Depends(get_runtime)) -> Dict[str, Any]:
    return build_agent_card(runtime.settings)


@router.post("/a2a/message/stream")
async def message_stream(
    request: SendMessageRequest,
    runtime: AgentRuntime = Depends(get_runtime),
) -> StreamingResponse:
    text = request.message.text()
    if not text.strip():
        raise APIError(400, "BAD_REQUEST", "Message has no text parts")

    task, bus = runtime.manager.submit(text, request.context_id)
    logger.info(
        "peer_task_started task_id=%s context_id=%s agent=%s",
        task.id,
        task.context_id,
        runtime.settings.name,
    )
    narration = ROLE_PROFILES.get(runtime.role, {}).get("narration", "")
    adapter = PeerStreamAdapter(task, bus, narration=narration)

    async def event_stream() -> AsyncGenerator[str, None]:
        finished = False
        try:
            async for update in adapter.updates():
                yield render_update(update)
                if isinstance(update, StatusUpdate) and update.final:
                    finished = True
        finally:
            if not finished and runtime.manager.cancel_nowait(task.id):
                logger.info("peer_disconnected task_id=%s", task.id)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Task-Id": task.id},
    )


@router.post("/a2a/tasks/{task_id}/cancel")
async def cancel_peer_task(
    task_id: str,
    response: Response,
    runtime: AgentRuntime = Depends(get_runtime),
) -> Dict[str, Any]:
    requested = await runtime.manager.cancel(task_id)
    response.status_code = status.HTTP_202_ACCEPTED if requested else status.HTTP_200_OK
    return {"taskId": task_id, "status": "cancelling" if requested else "not_running"}
