"""Shared builders for executor and stream tests."""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from claims_agents.agents.executor import AgentRole, TaskExecutor
from claims_agents.agents.reasoner import ConversationReasoner
from claims_agents.bus import EventBus
from claims_agents.providers.scripted import ScriptedProvider
from claims_agents.retry import RetryConfig
from claims_agents.tasks import Task, create_task
from claims_agents.tools import LocalToolInvoker, sample_tools

DETECTION = AgentRole(name="detection", vendor="anthropic", display_name="Detection Agent")


def scripted_factory(provider: ScriptedProvider) -> Callable[[], ConversationReasoner]:
    """Reasoner factory over a shared scripted provider, without retries."""

    def factory() -> ConversationReasoner:
        return ConversationReasoner(provider, retry=RetryConfig(max_attempts=1))

    return factory


def make_executor(
    steps: Sequence,
    tools=None,
    delegation=None,
    role: AgentRole = DETECTION,
    provider: Optional[ScriptedProvider] = None,
    **kwargs,
) -> TaskExecutor:
    provider = provider or ScriptedProvider(steps)
    return TaskExecutor(
        role,
        scripted_factory(provider),
        tools if tools is not None else LocalToolInvoker(sample_tools()),
        delegation=delegation,
        **kwargs,
    )


def new_task(text: str = "Find anomalies") -> tuple[Task, EventBus]:
    task = create_task(text)
    return task, EventBus(task.id)


def kinds(events: List) -> List[str]:
    return [event.kind.value for event in events]
