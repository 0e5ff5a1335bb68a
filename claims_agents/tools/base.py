"""Tool contract shared by the agents and the tool service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from ..providers.types import ToolSchema


@dataclass
class ToolResult:
    """Result from a tool execution."""

    success: bool
    data: Any = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.data is not None:
            payload["data"] = self.data
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass
class ToolInfo:
    name: str
    description: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "description": self.description}


class ToolInvoker(Protocol):
    """Executes named tools; errors come back as ``ToolResult(success=False)``."""

    async def call(self, name: str, args: Dict[str, Any]) -> ToolResult: ...

    async def list(self) -> List[ToolInfo]: ...


class BaseTool(ABC):
    """Base class for tools served by the tool service."""

    name: str
    description: str
    parameters: Dict[str, Any] = {}
    cacheable: bool = False

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the tool with given parameters."""
        pass

    def to_schema(self) -> ToolSchema:
        return tool_schema(self.name, self.description, self.parameters)

    def info(self) -> ToolInfo:
        return ToolInfo(name=self.name, description=self.description)


def tool_schema(name: str, description: str, parameters: Dict[str, Any]) -> ToolSchema:
    """Build a JSON-schema tool declaration.

    ``parameters`` maps property names to their schema; a property marked
    ``"required": True`` is listed in the object's ``required`` array.
    """
    properties = {
        key: {k: v for k, v in spec.items() if k != "required"}
        for key, spec in parameters.items()
    }
    required = [key for key, spec in parameters.items() if spec.get("required", False)]
    return ToolSchema(
        name=name,
        description=description,
        parameters={"type": "object", "properties": properties, "required": required},
    )
