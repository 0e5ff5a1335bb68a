"""In-process tool registry with result caching and audit logging."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Iterable, List, Optional

from ..audit import DEFAULT_LIMIT, MAX_LIMIT, AuditLog
from ..cache import TTLCache
from .base import BaseTool, ToolInfo, ToolResult

logger = logging.getLogger(__name__)

AUDIT_TOOL = "get_audit_log"


class GetAuditLogTool(BaseTool):
    """Reports recent tool calls recorded by the owning registry."""

    name = AUDIT_TOOL
    description = (
        "Return a log of recent tool calls for compliance and transparency. Shows timestamp, tool name, "
        "inputs, output summary, and execution duration for each call."
    )
    parameters = {
        "limit": {
            "type": "number",
            "description": f"Maximum number of log entries to return (default: {DEFAULT_LIMIT}, max: {MAX_LIMIT})",
        },
    }

    def __init__(self, audit: AuditLog) -> None:
        self.audit = audit

    async def execute(self, limit: Optional[int] = DEFAULT_LIMIT, **kwargs: Any) -> ToolResult:
        return ToolResult(success=True, data=self.audit.report(limit))


class LocalToolInvoker:
    """Runs registered tools in-process.

    The cache and the audit log are created by the caller and injected, so
    one pair can be shared by every invoker in a process (the tool service
    app holds exactly one of each).

    Example:
        invoker = LocalToolInvoker(sample_tools(), cache=TTLCache(), audit=AuditLog())
        result = await invoker.call("search_providers", {"query": "Houston"})
    """

    def __init__(
        self,
        tools: Iterable[BaseTool],
        cache: Optional[TTLCache] = None,
        audit: Optional[AuditLog] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self.cache = cache if cache is not None else TTLCache()
        self.audit = audit if audit is not None else AuditLog()
        self.timeout_seconds = timeout_seconds
        self._tools: Dict[str, BaseTool] = {}
        for tool in tools:
            self.register(tool)
        if AUDIT_TOOL not in self._tools:
            self.register(GetAuditLogTool(self.audit))

    def register(self, tool: BaseTool) -> None:
        self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[BaseTool]:
        return self._tools.get(name)

    async def list(self) -> List[ToolInfo]:
        return [tool.info() for tool in self._tools.values()]

    async def call(self, name: str, args: Dict[str, Any]) -> ToolResult:
        tool = self._tools.get(name)
        if tool is None:
            return ToolResult(success=False, error=f"Unknown tool: {name}")

        args = dict(args or {})
        if tool.cacheable:
            cached = self.cache.get(name, args)
            if cached is not None:
                logger.debug("Cache hit for %s", name)
                self._audit(name, args, cached, 0)
                return cached

        started = time.perf_counter()
        try:
            if self.timeout_seconds:
                result = await asyncio.wait_for(tool.execute(**args), timeout=self.timeout_seconds)
            else:
                result = await tool.execute(**args)
        except asyncio.TimeoutError:
            result = ToolResult(success=False, error=f"Tool {name} timed out after {self.timeout_seconds}s")
        except TypeError as e:
            result = ToolResult(success=False, error=f"Invalid arguments for {name}: {e}")
        except Exception as e:
            logger.exception("Tool %s failed", name)
            result = ToolResult(success=False, error=str(e))
        duration_ms = int((time.perf_counter() - started) * 1000)

        if tool.cacheable and result.success:
            self.cache.set(name, args, result)
        self._audit(name, args, result, duration_ms)
        return result

    def _audit(self, name: str, args: Dict[str, Any], result: ToolResult, duration_ms: int) -> None:
        if name == AUDIT_TOOL:
            return
        output = result.data if result.success else {"error": result.error}
        self.audit.record(name, args, output, duration_ms, success=result.success)
