"""Lists the tools an agent offers its reasoner."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ....tools.definitions import TOOLS_BY_ROLE
from ...runtime import AgentRuntime
from ..deps import get_runtime

router = APIRouter(tags=["tools"])


@router.get("/tools")
async def list_agent_tools(runtime: AgentRuntime = Depends(get_runtime)) -> Dict[str, Any]:
    return {
        "agent": runtime.settings.name,
        "tools": [
            {"name": schema.name, "description": schema.description, "parameters": schema.parameters}
            for schema in TOOLS_BY_ROLE[runtime.role]
        ],
    }
