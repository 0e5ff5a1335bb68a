"""In-memory audit log of tool invocations."""

from __future__ import annotations

import json
import threading
from collections import Counter, deque
from dataclasses import asdict, dataclass
from typing import Any, Deque, Dict, List, Optional

from .tasks import utc_now_iso

MAX_LOG_ENTRIES = 1000
MAX_SUMMARY_LENGTH = 200
DEFAULT_LIMIT = 50
MAX_LIMIT = 200

# Fields surfaced first when summarizing a tool's output.
PRIORITY_FIELDS = (
    "summary",
    "overallRiskLevel",
    "currentRiskLevel",
    "riskLevel",
    "anomaliesDetected",
    "anomaliesFound",
    "totalDeceasedClaims",
    "matchesFound",
    "similarProvidersFound",
    "ringsDetected",
    "error",
)


@dataclass
class AuditLogEntry:
    id: str
    timestamp: str
    tool: str
    input: Dict[str, Any]
    output_summary: str
    duration_ms: int
    success: bool

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        return {
            "id": payload["id"],
            "timestamp": payload["timestamp"],
            "tool": payload["tool"],
            "input": payload["input"],
            "outputSummary": payload["output_summary"],
            "durationMs": payload["duration_ms"],
            "success": payload["success"],
        }


def truncate(text: str, max_length: int = MAX_SUMMARY_LENGTH) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def summarize_output(output: Any, max_length: int = MAX_SUMMARY_LENGTH) -> str:
    """Short human-readable summary of a tool result."""
    if output is None or output == "" or output == {}:
        return "No output"
    if isinstance(output, str):
        try:
            output = json.loads(output)
        except ValueError:
            return truncate(output, max_length)
    if not isinstance(output, dict):
        return truncate(str(output), max_length)

    parts = []
    for name in PRIORITY_FIELDS:
        value = output.get(name)
        if isinstance(value, (str, int, float, bool)):
            rendered = str(value).lower() if isinstance(value, bool) else str(value)
            parts.append(f"{name}: {rendered}")
    if parts:
        return truncate(". ".join(parts), max_length)
    return truncate("Keys: " + ", ".join(list(output)[:3]), max_length)


class AuditLog:
    """Bounded, newest-first record of tool calls.

    One instance is created by whoever owns the tool registry and passed in;
    a lock keeps it consistent when handlers run on worker threads.
    """

    def __init__(self, capacity: int = MAX_LOG_ENTRIES) -> None:
        self.capacity = capacity
        self._entries: Deque[AuditLogEntry] = deque(maxlen=capacity)
        self._counter = 0
        self._lock = threading.Lock()

    def record(
        self,
        tool: str,
        input: Dict[str, Any],
        output: Any,
        duration_ms: int,
        success: bool = True,
    ) -> AuditLogEntry:
        with self._lock:
            self._counter += 1
            entry = AuditLogEntry(
                id=f"LOG_{self._counter:06d}",
                timestamp=utc_now_iso(),
                tool=tool,
                input=dict(input),
                output_summary=summarize_output(output),
                duration_ms=int(duration_ms),
                success=success,
            )
            # deque(maxlen) drops from the right when appending left
            self._entries.appendleft(entry)
            return entry

    def recent(self, limit: Optional[int] = DEFAULT_LIMIT) -> List[AuditLogEntry]:
        safe_limit = min(max(1, int(DEFAULT_LIMIT if limit is None else limit)), MAX_LIMIT)
        with self._lock:
            return list(self._entries)[:safe_limit]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._counter = 0

    def report(self, limit: Optional[int] = DEFAULT_LIMIT) -> Dict[str, Any]:
        """Payload of the ``get_audit_log`` tool."""
        logs = self.recent(limit)
        successes = sum(1 for entry in logs if entry.success)
        total_duration = sum(entry.duration_ms for entry in logs)
        usage = Counter(entry.tool for entry in logs)
        return {
            "totalLogsStored": len(self),
            "logsReturned": len(logs),
            "statistics": {
                "successCount": successes,
                "failureCount": len(logs) - successes,
                "successRate": round(successes / len(logs), 2) if logs else 1,
                "averageDurationMs": round(total_duration / len(logs)) if logs else 0,
                "toolUsage": [{"tool": tool, "count": count} for tool, count in usage.most_common()],
            },
            "logs": [entry.to_dict() for entry in logs],
        }
