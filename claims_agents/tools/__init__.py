"""Tool contract, declarations and invokers."""

from .base import BaseTool, ToolInfo, ToolInvoker, ToolResult, tool_schema
from .definitions import (
    DELEGATION_TOOL,
    DETECTION_TOOLS,
    INVESTIGATION_TOOLS,
    TOOLS_BY_ROLE,
    service_tool_name,
)
from .http_client import ConnectionState, HttpToolInvoker
from .local import AUDIT_TOOL, LocalToolInvoker
from .sample import sample_tools

__all__ = [
    "AUDIT_TOOL",
    "BaseTool",
    "ConnectionState",
    "DELEGATION_TOOL",
    "DETECTION_TOOLS",
    "HttpToolInvoker",
    "INVESTIGATION_TOOLS",
    "LocalToolInvoker",
    "TOOLS_BY_ROLE",
    "ToolInfo",
    "ToolInvoker",
    "ToolResult",
    "sample_tools",
    "service_tool_name",
    "tool_schema",
]
