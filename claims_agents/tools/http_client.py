"""HTTP client for the tool service."""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..retry import PermanentError, RetryConfig, TransientError, retry_with_backoff
from .base import ToolInfo, ToolResult
from .definitions import service_tool_name

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DEGRADED = "degraded"
    CLOSED = "closed"


StateListener = Callable[[ConnectionState, ConnectionState], None]


class HttpToolInvoker:
    """Calls tools on the tool service over a pooled connection.

    Failures never raise: they come back as ``ToolResult(success=False)`` so
    the executor can hand them to the reasoner. Transient failures (transport
    errors, 429 and 5xx) are retried with exponential backoff and jitter; the
    connection is reported ``degraded`` while retries are in progress and
    ``connected`` again after the next successful response.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30.0,
        max_connections: int = 20,
        max_keepalive_connections: int = 10,
        retry: Optional[RetryConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.retry = retry or RetryConfig()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_keepalive_connections,
            ),
        )
        self._state = ConnectionState.IDLE
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def _set_state(self, new_state: ConnectionState) -> None:
        if new_state == self._state:
            return
        old_state, self._state = self._state, new_state
        logger.info("Tool service connection %s -> %s (%s)", old_state.value, new_state.value, self.base_url)
        for listener in list(self._listeners):
            listener(old_state, new_state)

    async def call(self, name: str, args: Dict[str, Any]) -> ToolResult:
        if self._state == ConnectionState.CLOSED:
            return ToolResult(success=False, error="Tool service client is closed")
        remote_name = service_tool_name(name)
        started = time.perf_counter()
        try:
            payload = await self._request("POST", f"/api/tools/{remote_name}", json=args or {})
        except Exception as e:
            logger.warning("Tool %s failed after %.0fms: %s", remote_name, (time.perf_counter() - started) * 1000, e)
            return ToolResult(success=False, error=_error_message(e))

        if isinstance(payload, dict) and "data" in payload:
            return ToolResult(success=True, data=payload["data"])
        return ToolResult(success=True, data=payload)

    async def list(self) -> List[ToolInfo]:
        payload = await self._request("GET", "/api/tools")
        tools = payload.get("tools", []) if isinstance(payload, dict) else payload
        return [ToolInfo(name=t["name"], description=t.get("description", "")) for t in tools]

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        if self._state == ConnectionState.IDLE:
            self._set_state(ConnectionState.CONNECTING)

        async def send() -> Any:
            response = await self._client.request(method, path, **kwargs)
            if response.status_code == 429 or response.status_code >= 500:
                raise TransientError(f"HTTP {response.status_code}: {_body_error(response)}")
            if response.status_code >= 400:
                raise PermanentError(_body_error(response))
            return response.json()

        def on_retry(attempt: int, error: Exception) -> None:
            self._set_state(ConnectionState.DEGRADED)

        try:
            result = await retry_with_backoff(send, self.retry, on_retry=on_retry)
        except PermanentError:
            # The service answered; only the request was rejected.
            self._set_state(ConnectionState.CONNECTED)
            raise
        except Exception:
            self._set_state(ConnectionState.DEGRADED)
            raise
        self._set_state(ConnectionState.CONNECTED)
        return result

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
        self._set_state(ConnectionState.CLOSED)


def _body_error(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error)
        if error:
            return str(error)
    return f"HTTP {response.status_code}"


def _error_message(error: Exception) -> str:
    if isinstance(error, httpx.TransportError):
        return f"Tool service unreachable: {error}"
    return str(error) or error.__class__.__name__
