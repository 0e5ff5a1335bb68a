"""Factory functions wiring configuration into executors, tools and delegation."""

from __future__ import annotations

import logging
from typing import Optional

from .agents.delegation import DelegationClient
from .agents.executor import AgentRole, Delegator, TaskExecutor
from .agents.prompts import system_prompt_for
from .agents.reasoner import ReasonerFactory, reasoner_factory_for
from .audit import AuditLog
from .cache import TTLCache
from .config import PRIMARY_ROLE, AppConfig
from .observability import AgentObserver
from .retry import RetryConfig
from .tools import TOOLS_BY_ROLE, HttpToolInvoker, LocalToolInvoker, ToolInvoker, sample_tools

logger = logging.getLogger(__name__)


def create_tool_invoker(config: AppConfig, offline: bool = False) -> ToolInvoker:
    """Create the invoker agents use to reach their tools.

    Args:
        config: Application configuration
        offline: Use the in-process sample tools instead of the tool service

    Returns:
        A ``LocalToolInvoker`` when offline, otherwise an ``HttpToolInvoker``
    """
    settings = config.tools
    if offline:
        logger.info("Using in-process sample tools")
        return LocalToolInvoker(
            sample_tools(),
            cache=TTLCache(default_ttl_seconds=settings.cache_ttl_seconds, max_entries=settings.cache_max_entries),
            audit=AuditLog(capacity=settings.audit_capacity),
            timeout_seconds=settings.timeout_seconds,
        )
    return HttpToolInvoker(
        settings.url,
        timeout_seconds=settings.timeout_seconds,
        max_connections=settings.max_connections,
        max_keepalive_connections=settings.max_keepalive_connections,
        retry=RetryConfig(max_attempts=settings.retry_attempts, base_delay=settings.retry_base_delay),
    )


def create_delegation_client(config: AppConfig, observer: Optional[AgentObserver] = None) -> DelegationClient:
    """Create the primary agent's client for its delegate."""
    delegate = config.delegate
    return DelegationClient(
        peer_url=delegate.url,
        from_agent=config.primary.name,
        to_agent=delegate.name,
        to_vendor=delegate.vendor,
        display_name=delegate.display_name,
        tool_name=config.delegation.tool_name,
        timeout_seconds=config.delegation.timeout_seconds,
        channel_size=config.delegation.channel_size,
        observer=observer,
    )


def create_executor(
    config: AppConfig,
    role: str,
    tools: ToolInvoker,
    reasoner_factory: Optional[ReasonerFactory] = None,
    delegation: Optional[Delegator] = None,
    observer: Optional[AgentObserver] = None,
) -> TaskExecutor:
    """Create the task executor for one agent role.

    The primary role gets a delegation client when none is supplied; the
    delegate role never delegates.
    """
    settings = config.agent(role)
    observer = observer or AgentObserver(agent_id=settings.name)

    if reasoner_factory is None:
        reasoner_factory = reasoner_factory_for(
            settings.provider,
            model=settings.model,
            api_key=settings.api_key,
            system_prompt=system_prompt_for(role, settings.system_prompt),
            tools=TOOLS_BY_ROLE[role],
            api_base=settings.api_base,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            observer=observer,
        )

    if role == PRIMARY_ROLE and delegation is None:
        delegation = create_delegation_client(config, observer=observer)
    elif role != PRIMARY_ROLE:
        delegation = None

    return TaskExecutor(
        role=AgentRole(name=settings.name, vendor=settings.vendor, display_name=settings.display_name),
        reasoner_factory=reasoner_factory,
        tools=tools,
        delegation=delegation,
        max_iterations=settings.max_iterations,
        task_timeout_seconds=settings.task_timeout_seconds,
        observer=observer,
    )
