"""Task control endpoints."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from ...errors import not_found
from ...runtime import AgentRuntime
from ..deps import get_runtime

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = logging.getLogger("claims_agents.web.api")


class TaskStatusResponse(BaseModel):
    task_id: str
    status: str
    created_at: Optional[str] = None
    ended_at: Optional[str] = None
    error: Optional[str] = None


class CancelTaskResponse(BaseModel):
    task_id: str
    status: str


@router.get("/{task_id}", response_model=TaskStatusResponse)
async def get_task(task_id: str, runtime: AgentRuntime = Depends(get_runtime)) -> TaskStatusResponse:
    task = runtime.manager.get(task_id)
    if task is None:
        raise not_found("Task", task_id)
    return TaskStatusResponse(
        task_id=task.id,
        status=task.state.value,
        created_at=task.created_at,
        ended_at=task.ended_at,
        error=task.error,
    )


@router.post("/{task_id}/cancel", response_model=CancelTaskResponse)
async def cancel_task(
    task_id: str,
    response: Response,
    runtime: AgentRuntime = Depends(get_runtime),
) -> CancelTaskResponse:
    """Request cancellation; unknown and finished tasks are not an error."""
    requested = await runtime.manager.cancel(task_id)
    response.status_code = status.HTTP_202_ACCEPTED if requested else status.HTTP_200_OK
    logger.info("task_cancel task_id=%s requested=%s", task_id, requested)
    return CancelTaskResponse(task_id=task_id, status="cancelling" if requested else "not_running")
