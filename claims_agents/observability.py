"""Observability for agent runs: structured event records plus logging."""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(verbose: bool = False) -> None:
    """Configure the ``claims_agents`` logger tree for CLI and server entry points."""
    root = logging.getLogger("claims_agents")
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)


@dataclass
class ObservedEvent:
    """A single record of what an agent did."""

    timestamp: datetime
    event_type: str  # "llm_request", "tool_call", "delegation", "error"
    data: Dict[str, Any]
    duration_ms: Optional[float] = None


class AgentObserver:
    """
    Tracks one agent role's reasoning round trips, tool calls and failures.

    Records are kept in memory for the lifetime of the process (they back the
    statistics reported by `/healthz`); every record is also written to the
    ``claims_agents.observer`` logger with a ``[agent]`` prefix.
    """

    def __init__(self, agent_id: Optional[str] = None, max_events: int = 5000):
        self.events: List[ObservedEvent] = []
        self.logger = logging.getLogger("claims_agents.observer")
        self.agent_id = agent_id
        self.max_events = max_events

    def _prefix(self) -> str:
        return f"[{self.agent_id}] " if self.agent_id else ""

    def _record(self, event: ObservedEvent) -> None:
        self.events.append(event)
        if len(self.events) > self.max_events:
            del self.events[0]

    def log_llm_request(
        self,
        model: str,
        iteration: int,
        duration_ms: float,
        tool_calls: int = 0,
        task_id: Optional[str] = None,
    ) -> None:
        """
        Log one reasoner round trip.

        Args:
            model: Model name (e.g., "claude-sonnet-4-20250514")
            iteration: Loop iteration (0 is the initial request)
            duration_ms: Round-trip duration in milliseconds
            tool_calls: Number of tool calls the reply requested
            task_id: Task the request belongs to
        """
        self._record(
            ObservedEvent(
                timestamp=datetime.now(),
                event_type="llm_request",
                data={"model": model, "iteration": iteration, "tool_calls": tool_calls, "task_id": task_id},
                duration_ms=duration_ms,
            )
        )
        self.logger.info(
            "%sLLM: %s | iteration %d | %d tool call(s) | %.2fms",
            self._prefix(),
            model,
            iteration,
            tool_calls,
            duration_ms,
        )

    def log_tool_call(
        self,
        tool_name: str,
        args: Dict[str, Any],
        result: Any,
        duration_ms: float,
        success: bool = True,
    ) -> None:
        """
        Log a tool execution.

        Args:
            tool_name: Name of the tool executed
            args: Arguments passed to the tool
            result: Result payload fed back to the reasoner
            duration_ms: Execution time in milliseconds
            success: Whether execution succeeded
        """
        try:
            rendered = json.dumps(result, ensure_ascii=True, default=str)
        except (TypeError, ValueError):
            rendered = str(result)
        self._record(
            ObservedEvent(
                timestamp=datetime.now(),
                event_type="tool_call",
                data={"tool": tool_name, "args": args, "result": rendered[:200], "success": success},
                duration_ms=duration_ms,
            )
        )
        status = "ok" if success else "failed"
        self.logger.info("%sTool: %s %s (%.2fms)", self._prefix(), tool_name, status, duration_ms)

    def log_delegation(self, to_agent: str, duration_ms: float, success: bool) -> None:
        self._record(
            ObservedEvent(
                timestamp=datetime.now(),
                event_type="delegation",
                data={"to": to_agent, "success": success},
                duration_ms=duration_ms,
            )
        )
        self.logger.info(
            "%sDelegation to %s %s (%.2fms)",
            self._prefix(),
            to_agent,
            "completed" if success else "failed",
            duration_ms,
        )

    def log_error(self, error_type: str, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Log an error event.

        Args:
            error_type: Type of error (e.g., "reasoner", "deadline", "cancelled")
            message: Error message
            context: Additional context about the error
        """
        self._record(
            ObservedEvent(
                timestamp=datetime.now(),
                event_type="error",
                data={"error_type": error_type, "message": message, "context": context or {}},
            )
        )
        self.logger.error("%sError (%s): %s", self._prefix(), error_type, message)

    def get_stats(self) -> Dict[str, Any]:
        """Aggregated counts and durations over recorded events."""
        tool_calls = [e for e in self.events if e.event_type == "tool_call"]
        failed_tools = sum(1 for e in tool_calls if not e.data.get("success", True))
        return {
            "event_count": len(self.events),
            "llm_requests": sum(1 for e in self.events if e.event_type == "llm_request"),
            "tool_calls": len(tool_calls),
            "tool_failures": failed_tools,
            "delegations": sum(1 for e in self.events if e.event_type == "delegation"),
            "errors": sum(1 for e in self.events if e.event_type == "error"),
            "total_duration_ms": sum(e.duration_ms or 0 for e in self.events),
        }

    def clear(self) -> None:
        self.events.clear()
