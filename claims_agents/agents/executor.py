"""Bounded reason-and-act loop for one agent role."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from ..bus import EventBus
from ..errors import ReasonerError, ToolExecutionError
from ..events import AgentActive, Done, Error, Text, Thinking, ToolCall
from ..observability import AgentObserver
from ..providers.types import FunctionCall, FunctionResponse, LLMResponse
from ..tasks import Task, TaskState
from ..tools.base import ToolInvoker
from .reasoner import ReasonerFactory

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 10
FALLBACK_TEXT = "Analysis complete. No additional details available."
TRUNCATION_TEMPLATE = "Investigation reached maximum iterations ({limit}). Partial results:\n\n{text}"


class Delegator(Protocol):
    """Hands one request to the peer agent, streaming its progress into ``bus``."""

    tool_name: str

    async def delegate(self, request: str, bus: EventBus, context_id: Optional[str] = None) -> str: ...


@dataclass
class AgentRole:
    """Identity of the agent an executor runs as."""

    name: str
    vendor: str
    display_name: str = ""


@dataclass
class _RunState:
    iterations: int = 0
    last_text: str = ""
    truncated: bool = False
    tool_calls: int = 0


class TaskExecutor:
    """Runs one task through the reasoner/tool loop and publishes its events.

    Every exit path publishes ``AgentActive{completed}`` followed by exactly
    one terminal event: ``Done`` after the final ``Text`` on success, or
    ``Error`` (optionally preceded by partial ``Text``) on failure, deadline
    expiry or cancellation.

    Example:
        executor = TaskExecutor(role, reasoner_factory, tools, delegation=client)
        final_text = await executor.execute(task, bus)
    """

    def __init__(
        self,
        role: AgentRole,
        reasoner_factory: ReasonerFactory,
        tools: ToolInvoker,
        delegation: Optional[Delegator] = None,
        max_iterations: int = MAX_ITERATIONS,
        task_timeout_seconds: float = 600.0,
        observer: Optional[AgentObserver] = None,
    ) -> None:
        """Initialize the executor.

        Args:
            role: Agent identity stamped on emitted events
            reasoner_factory: Builds a fresh, stateful reasoner per task
            tools: Invoker for every tool except the delegation tool
            delegation: Peer delegation client (primary role only)
            max_iterations: Upper bound on tool rounds per task
            task_timeout_seconds: Wall-clock deadline per task (0 disables)
            observer: Observer for logging and metrics
        """
        self.role = role
        self.reasoner_factory = reasoner_factory
        self.tools = tools
        self.delegation = delegation
        self.max_iterations = max_iterations
        self.task_timeout_seconds = task_timeout_seconds
        self.observer = observer or AgentObserver(agent_id=role.name)

    async def execute(self, task: Task, bus: EventBus) -> str:
        """Run ``task`` to a terminal state.

        Returns:
            The final text (on failure, the error message).

        Raises:
            asyncio.CancelledError: Re-raised after the terminal events when
                the task is cancelled.
        """
        state = _RunState()
        task.transition(TaskState.WORKING)
        bus.publish(AgentActive(agent=self.role.name, vendor=self.role.vendor, status="working"))
        logger.info("[%s] Processing task %s", self.role.name, task.id)

        try:
            if self.task_timeout_seconds and self.task_timeout_seconds > 0:
                final_text = await asyncio.wait_for(self._loop(task, bus, state), timeout=self.task_timeout_seconds)
            else:
                final_text = await self._loop(task, bus, state)
        except asyncio.CancelledError:
            self._fail(task, bus, state, TaskState.CANCELED, "Task cancelled", error_type="cancelled")
            raise
        except asyncio.TimeoutError:
            message = f"Task exceeded deadline of {self.task_timeout_seconds:g}s"
            return self._fail(task, bus, state, TaskState.FAILED, message, error_type="deadline")
        except ReasonerError as e:
            return self._fail(task, bus, state, TaskState.FAILED, str(e), error_type="reasoner")
        except Exception as e:
            logger.exception("[%s] Unexpected failure in task %s", self.role.name, task.id)
            return self._fail(task, bus, state, TaskState.FAILED, f"Internal error: {e}", error_type="internal")

        task.add_message("agent", final_text)
        task.transition(TaskState.COMPLETED)
        bus.publish(AgentActive(agent=self.role.name, vendor=self.role.vendor, status="completed"))
        bus.publish(Text(text=final_text))
        bus.publish(Done(task_id=task.id))
        logger.info(
            "[%s] Task %s completed after %d iteration(s)%s",
            self.role.name,
            task.id,
            state.iterations,
            " (truncated)" if state.truncated else "",
        )
        return final_text

    def _fail(
        self,
        task: Task,
        bus: EventBus,
        state: _RunState,
        terminal: TaskState,
        message: str,
        error_type: str,
    ) -> str:
        task.error = message
        task.transition(terminal)
        self.observer.log_error(error_type, message, context={"task_id": task.id, "iterations": state.iterations})
        bus.publish(AgentActive(agent=self.role.name, vendor=self.role.vendor, status="completed"))
        if state.last_text:
            bus.publish(Text(text=state.last_text))
        bus.publish(Error(message=message))
        return message

    async def _loop(self, task: Task, bus: EventBus, state: _RunState) -> str:
        try:
            reasoner = self.reasoner_factory()
        except ReasonerError:
            raise
        except Exception as e:
            raise ReasonerError(f"Could not start reasoner: {e}") from e

        reply = await reasoner.send(task.user_text)
        self._note_reply(bus, state, reply)

        while reply.function_calls and state.iterations < self.max_iterations:
            state.iterations += 1
            logger.info(
                "[%s] Iteration %d: %d tool call(s)",
                self.role.name,
                state.iterations,
                len(reply.function_calls),
            )
            results = await asyncio.gather(*[self._run_tool_call(call, task, bus) for call in reply.function_calls])
            state.tool_calls += len(results)
            reply = await reasoner.send_tool_results(list(results))
            self._note_reply(bus, state, reply)

        text = reply.text or ""
        if reply.function_calls:
            state.truncated = True
            logger.warning("[%s] Reached max iterations (%d)", self.role.name, self.max_iterations)
            return TRUNCATION_TEMPLATE.format(limit=self.max_iterations, text=text or FALLBACK_TEXT)
        return text or FALLBACK_TEXT

    def _note_reply(self, bus: EventBus, state: _RunState, reply: LLMResponse) -> None:
        if reply.text:
            state.last_text = reply.text
        if reply.function_calls:
            narrative = reply.thinking or reply.text
            if narrative:
                bus.publish(Thinking(agent=self.role.name, text=narrative))

    async def _run_tool_call(self, call: FunctionCall, task: Task, bus: EventBus) -> FunctionResponse:
        bus.publish(ToolCall(agent=self.role.name, tool=call.name, phase="start", call_id=call.id))
        started = time.perf_counter()
        success = True
        try:
            if self.delegation is not None and call.name == self.delegation.tool_name:
                request = str(call.arguments.get("request", ""))
                report = await self.delegation.delegate(request, bus, context_id=task.context_id)
                response: Dict[str, Any] = {"investigation_report": report}
            else:
                result = await self.tools.call(call.name, call.arguments or {})
                if not result.success:
                    raise ToolExecutionError(call.name, result.error or "Unknown error")
                response = _as_response(result.data)
        except asyncio.CancelledError:
            self._publish_tool_end(bus, call, started, success=False)
            raise
        except Exception as e:
            logger.warning("[%s] Tool %s failed: %s", self.role.name, call.name, e)
            success = False
            response = {"error": str(e) or e.__class__.__name__}

        duration_ms = self._publish_tool_end(bus, call, started, success)
        self.observer.log_tool_call(call.name, call.arguments or {}, response, duration_ms, success=success)
        return FunctionResponse(name=call.name, response=response, call_id=call.id)

    def _publish_tool_end(self, bus: EventBus, call: FunctionCall, started: float, success: bool) -> int:
        duration_ms = int((time.perf_counter() - started) * 1000)
        bus.publish(
            ToolCall(
                agent=self.role.name,
                tool=call.name,
                phase="end",
                duration=duration_ms,
                success=success,
                call_id=call.id,
            )
        )
        return duration_ms


def _as_response(data: Any) -> Dict[str, Any]:
    if isinstance(data, dict):
        return data
    return {"result": data}
