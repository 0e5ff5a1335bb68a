"""Task lifecycle and the per-process task manager."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from .bus import EventBus
from .errors import InvalidTransitionError
from .events import Error

if TYPE_CHECKING:
    from .agents.executor import TaskExecutor

logger = logging.getLogger(__name__)


class TaskState(str, Enum):
    SUBMITTED = "submitted"
    WORKING = "working"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"


TERMINAL_TASK_STATES = {TaskState.COMPLETED, TaskState.FAILED, TaskState.CANCELED}

_STATE_RANK = {
    TaskState.SUBMITTED: 0,
    TaskState.WORKING: 1,
    TaskState.COMPLETED: 2,
    TaskState.FAILED: 2,
    TaskState.CANCELED: 2,
}


def utc_now_iso() -> str:
    """Return current UTC time in ISO-8601 format."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def make_id(prefix: str) -> str:
    """Create an opaque id with a readable prefix."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


@dataclass
class TaskMessage:
    role: str  # "user" | "agent"
    text: str
    created_at: str = field(default_factory=utc_now_iso)


@dataclass
class Task:
    """One user request handled by one agent role.

    Attributes:
        id: Unique task identifier
        context_id: Groups a task with any delegated sub-task
        state: Current lifecycle state (monotonic)
        history: Ordered user/agent messages
        error: Failure or cancellation message for terminal non-success states
    """

    id: str
    context_id: str
    state: TaskState = TaskState.SUBMITTED
    history: List[TaskMessage] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now_iso)
    ended_at: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_TASK_STATES

    @property
    def user_text(self) -> str:
        for message in self.history:
            if message.role == "user":
                return message.text
        return ""

    def transition(self, new_state: TaskState) -> None:
        """Move to ``new_state``; states are never revisited.

        Raises:
            InvalidTransitionError: On a backwards move or when already terminal.
        """
        if self.is_terminal or _STATE_RANK[new_state] <= _STATE_RANK[self.state]:
            raise InvalidTransitionError(
                f"Task {self.id}: cannot move from {self.state.value} to {new_state.value}"
            )
        self.state = new_state
        if new_state in TERMINAL_TASK_STATES:
            self.ended_at = utc_now_iso()

    def add_message(self, role: str, text: str) -> None:
        self.history.append(TaskMessage(role=role, text=text))


def flatten_history(messages: List[Dict[str, str]]) -> str:
    """Collapse a chat history into one request text.

    A single message is passed through; longer histories become
    ``User: ...`` / ``Assistant: ...`` blocks separated by blank lines.
    """
    if len(messages) == 1:
        return messages[0].get("content", "")
    parts = []
    for message in messages:
        label = "Assistant" if message.get("role") == "assistant" else "User"
        parts.append(f"{label}: {message.get('content', '')}")
    return "\n\n".join(parts)


def create_task(message: str, context_id: Optional[str] = None) -> Task:
    """Create a submitted task holding the user's message."""
    task = Task(id=make_id("task"), context_id=context_id or make_id("ctx"))
    task.add_message("user", message)
    return task


class TaskManager:
    """Runs tasks for one agent process and forgets them once they finish.

    Example:
        manager = TaskManager(executor)
        task, bus = manager.submit("Find anomalous providers")
        async for event in bus.subscribe():
            ...
        await manager.cancel(task.id)  # no-op once finished
    """

    def __init__(self, executor: TaskExecutor) -> None:
        self.executor = executor
        self._running: Dict[str, Tuple[Task, EventBus, asyncio.Task]] = {}

    def submit(self, message: str, context_id: Optional[str] = None) -> Tuple[Task, EventBus]:
        """Create a task and start executing it in the background."""
        task = create_task(message, context_id)
        bus = EventBus(task.id)
        runner = asyncio.create_task(self._run(task, bus), name=f"task-{task.id}")
        runner.add_done_callback(lambda done: self._finish(task, bus, done))
        self._running[task.id] = (task, bus, runner)
        logger.info("task_submitted task_id=%s context_id=%s", task.id, task.context_id)
        return task, bus

    async def _run(self, task: Task, bus: EventBus) -> None:
        try:
            await self.executor.execute(task, bus)
        except asyncio.CancelledError:
            logger.info("task_cancelled task_id=%s", task.id)
            raise
        except Exception as e:
            logger.exception("task_crashed task_id=%s", task.id)
            self._settle(task, bus, TaskState.FAILED, f"Internal error: {e}")

    def _finish(self, task: Task, bus: EventBus, runner: asyncio.Task) -> None:
        # A runner cancelled before its first step never entered _run.
        if runner.cancelled():
            self._settle(task, bus, TaskState.CANCELED, "Task cancelled")
        bus.close()
        self._running.pop(task.id, None)
        logger.info("task_finished task_id=%s state=%s", task.id, task.state.value)

    @staticmethod
    def _settle(task: Task, bus: EventBus, state: TaskState, message: str) -> None:
        """Terminate a task the executor did not finish itself."""
        if task.is_terminal:
            return
        task.error = message
        task.transition(state)
        bus.publish(Error(message=message))

    def get(self, task_id: str) -> Optional[Task]:
        entry = self._running.get(task_id)
        return entry[0] if entry else None

    def bus_for(self, task_id: str) -> Optional[EventBus]:
        entry = self._running.get(task_id)
        return entry[1] if entry else None

    async def cancel(self, task_id: str) -> bool:
        """Request cancellation of a running task.

        Idempotent and silent: unknown, finished or already-cancelling tasks
        return False instead of raising.
        """
        return self.cancel_nowait(task_id)

    def cancel_nowait(self, task_id: str) -> bool:
        """Synchronous form of :meth:`cancel`, usable from cleanup code."""
        entry = self._running.get(task_id)
        if entry is None:
            return False
        task, _, runner = entry
        if task.is_terminal or runner.done() or runner.cancelling():
            return False
        runner.cancel()
        logger.info("task_cancel_requested task_id=%s", task_id)
        return True

    async def wait(self, task_id: str) -> None:
        """Wait for a task's runner to finish (no-op for unknown ids)."""
        entry = self._running.get(task_id)
        if entry is None:
            return
        await asyncio.gather(entry[2], return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel every live task and wait for them to settle."""
        runners = [runner for _, _, runner in self._running.values()]
        for runner in runners:
            runner.cancel()
        if runners:
            await asyncio.gather(*runners, return_exceptions=True)

    @property
    def active_count(self) -> int:
        return len(self._running)
