"""Per-process state shared by an agent server's endpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict

from ..agents.executor import TaskExecutor
from ..config import AgentSettings, AppConfig
from ..observability import AgentObserver
from ..tasks import TaskManager
from ..tools.base import ToolInvoker

logger = logging.getLogger(__name__)


@dataclass
class AgentRuntime:
    config: AppConfig
    role: str
    settings: AgentSettings
    executor: TaskExecutor
    manager: TaskManager
    tools: ToolInvoker
    observer: AgentObserver

    def metadata(self) -> Dict[str, str]:
        return {
            "agent": self.settings.name,
            "provider": self.settings.provider,
            "model": self.settings.model,
        }

    async def aclose(self) -> None:
        """Cancel live tasks, then release pooled HTTP clients."""
        await self.manager.shutdown()
        for resource in (self.executor.delegation, self.tools):
            close = getattr(resource, "aclose", None)
            if close is not None:
                await close()
        logger.info("[%s] Runtime closed", self.settings.name)
