"""FastAPI app for the tool service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from time import perf_counter
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, Request

from .. import __version__
from ..audit import AuditLog
from ..cache import TTLCache
from ..config import AppConfig, ToolSettings
from ..tools.local import LocalToolInvoker
from ..tools.sample import sample_tools
from .errors import APIError, install_error_handlers, not_found

logger = logging.getLogger("claims_agents.web.api")


def create_tool_app(config: Optional[AppConfig] = None, invoker: Optional[LocalToolInvoker] = None) -> FastAPI:
    """Create the tool service application.

    The cache and audit log belong to the single invoker this app owns, so
    every caller of the service shares them.
    """
    settings = config.tools if config is not None else ToolSettings()
    if invoker is None:
        invoker = LocalToolInvoker(
            sample_tools(),
            cache=TTLCache(default_ttl_seconds=settings.cache_ttl_seconds, max_entries=settings.cache_max_entries),
            audit=AuditLog(capacity=settings.audit_capacity),
            timeout_seconds=settings.timeout_seconds,
        )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        tools = await invoker.list()
        logger.info("tool_service_started tools=%s", ",".join(tool.name for tool in tools))
        try:
            yield
        finally:
            invoker.cache.clear()

    app = FastAPI(title="Claims Tool Service", version=__version__, lifespan=lifespan)
    app.state.invoker = invoker

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        start = perf_counter()
        response = await call_next(request)
        logger.info(
            "api_request method=%s path=%s status=%s duration_ms=%.2f",
            request.method,
            request.url.path,
            response.status_code,
            (perf_counter() - start) * 1000,
        )
        return response

    @app.get("/healthz", tags=["system"])
    async def healthz() -> dict:
        return {"status": "ok", "version": __version__, "cache": invoker.cache.get_stats()}

    @app.get("/api/tools", tags=["tools"])
    async def list_tools() -> Dict[str, Any]:
        return {"tools": [tool.to_dict() for tool in await invoker.list()]}

    @app.post("/api/tools/{name}", tags=["tools"])
    async def call_tool(name: str, args: Dict[str, Any] = Body(default={})) -> Dict[str, Any]:
        if invoker.get(name) is None:
            raise not_found("Tool", name)
        start = perf_counter()
        result = await invoker.call(name, args)
        duration_ms = int((perf_counter() - start) * 1000)
        if not result.success:
            raise APIError(400, "TOOL_ERROR", result.error or "Tool failed", {"tool": name})
        return {"data": result.data, "duration": duration_ms}

    install_error_handlers(app)
    return app


def serve_tools(config: AppConfig) -> None:
    """Run the tool service with uvicorn."""
    import uvicorn

    uvicorn.run(
        create_tool_app(config),
        host=config.tools.host,
        port=config.tools.port,
        log_level=config.log_level.lower(),
    )
