"""FastAPI app factory for an agent server."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from time import perf_counter
from typing import Optional

from fastapi import FastAPI, Request

from .. import __version__
from ..agent_factory import create_executor, create_tool_invoker
from ..agents.executor import Delegator
from ..agents.reasoner import ReasonerFactory
from ..config import PRIMARY_ROLE, AppConfig, load_config
from ..config_validator import Severity, validate_config
from ..observability import AgentObserver
from ..tasks import TaskManager
from ..tools.base import ToolInvoker
from .api.router import api_router, peer_router
from .errors import install_error_handlers
from .runtime import AgentRuntime

logger = logging.getLogger("claims_agents.web.api")


def create_agent_app(
    config: Optional[AppConfig] = None,
    role: str = PRIMARY_ROLE,
    *,
    tools: Optional[ToolInvoker] = None,
    reasoner_factory: Optional[ReasonerFactory] = None,
    delegation: Optional[Delegator] = None,
    offline: bool = False,
) -> FastAPI:
    """Create the FastAPI application serving one agent role.

    Args:
        config: Application configuration (loaded from disk if None)
        role: ``detection`` or ``investigation``
        tools: Tool invoker override (defaults to the tool service client)
        reasoner_factory: Reasoner factory override (defaults to the configured provider)
        delegation: Delegation client override (primary role only)
        offline: Use in-process sample tools instead of the tool service

    Returns:
        The configured application; its lifespan cancels live tasks on shutdown.
    """
    config = config or load_config()
    settings = config.agent(role)
    observer = AgentObserver(agent_id=settings.name)
    tools = tools or create_tool_invoker(config, offline=offline)
    executor = create_executor(
        config,
        role,
        tools,
        reasoner_factory=reasoner_factory,
        delegation=delegation,
        observer=observer,
    )
    runtime = AgentRuntime(
        config=config,
        role=role,
        settings=settings,
        executor=executor,
        manager=TaskManager(executor),
        tools=tools,
        observer=observer,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        for issue in validate_config(config, role=role):
            level = logging.ERROR if issue.severity == Severity.ERROR else logging.WARNING
            logger.log(level, "config_issue field=%s message=%s", issue.field, issue.message)
        logger.info(
            "agent_started agent=%s provider=%s model=%s url=%s",
            settings.name,
            settings.provider,
            settings.model,
            settings.url,
        )
        try:
            yield
        finally:
            await runtime.aclose()

    app = FastAPI(title=f"{settings.display_name} API", version=__version__, lifespan=lifespan)
    app.state.runtime = runtime
    app.include_router(api_router)
    app.include_router(peer_router)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        start = perf_counter()
        meta = runtime.metadata()
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = (perf_counter() - start) * 1000
            path_params = request.scope.get("path_params", {})
            logger.info(
                "api_request method=%s path=%s status=%s duration_ms=%.2f task_id=%s agent=%s provider=%s model=%s",
                request.method,
                request.url.path,
                500,
                duration_ms,
                path_params.get("task_id", "-"),
                meta["agent"],
                meta["provider"],
                meta["model"],
            )
            raise

        duration_ms = (perf_counter() - start) * 1000
        path_params = request.scope.get("path_params", {})
        logger.info(
            "api_request method=%s path=%s status=%s duration_ms=%.2f task_id=%s agent=%s provider=%s model=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            path_params.get("task_id", response.headers.get("x-task-id", "-")),
            meta["agent"],
            meta["provider"],
            meta["model"],
        )
        return response

    @app.get("/healthz", tags=["system"])
    async def healthz() -> dict:
        return {
            "status": "ok",
            "agent": settings.name,
            "vendor": settings.vendor,
            "version": __version__,
            "active_tasks": runtime.manager.active_count,
            "stats": runtime.observer.get_stats(),
        }

    install_error_handlers(app)
    return app


def serve(config: AppConfig, role: str, offline: bool = False) -> None:
    """Run one agent server with uvicorn."""
    import uvicorn

    settings = config.agent(role)
    app = create_agent_app(config, role, offline=offline)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=config.log_level.lower())
