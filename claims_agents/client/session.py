"""HTTP chat client for the primary agent."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import httpx

from .decoder import EventCallback, StreamDecoder
from .state import ChatMessage, ChatState

logger = logging.getLogger(__name__)

STREAM_CUT_MESSAGE = "Stream ended before the task finished"


class ChatClient:
    """Sends the conversation to ``/api/chat`` and streams the reply into a ChatState.

    Every request ends with both agents idle and either a finalized answer
    or a visible error, whatever happens on the wire.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 600.0,
        state: Optional[ChatState] = None,
        on_event: Optional[EventCallback] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.state = state if state is not None else ChatState()
        self.on_event = on_event
        self.current_task_id: Optional[str] = None
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds, connect=10.0))

    def history(self) -> List[Dict[str, str]]:
        """Conversation so far, without error placeholders."""
        return [
            {"role": message.role, "content": message.content}
            for message in self.state.messages
            if message.error is None
        ]

    async def send(self, text: str) -> Optional[ChatMessage]:
        """Send ``text`` and return the assistant message it produced, if any."""
        self.state.add_user_message(text)
        before = len(self.state.messages)
        decoder = StreamDecoder(self.state, on_event=self.on_event)
        try:
            async with self._client.stream(
                "POST",
                f"{self.base_url}/api/chat",
                json={"messages": self.history()},
                headers={"Accept": "text/event-stream"},
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    self.state.fail(_http_error(response))
                    return self._latest(before)
                self.current_task_id = response.headers.get("x-task-id")
                async for chunk in response.aiter_bytes():
                    decoder.feed(chunk)
                decoder.close()
                if not decoder.terminated:
                    self.state.fail(STREAM_CUT_MESSAGE)
        except httpx.HTTPError as e:
            logger.warning("Chat request failed: %s", e)
            self.state.fail(f"Failed to connect to API: {str(e) or e.__class__.__name__}")
        finally:
            self.current_task_id = None
            self.state.finish_request()

        if decoder.ignored:
            logger.debug("Ignored %d undecodable frame(s)", decoder.ignored)
        return self._latest(before)

    def _latest(self, before: int) -> Optional[ChatMessage]:
        produced = self.state.messages[before:]
        return produced[-1] if produced else None

    async def cancel(self) -> bool:
        """Ask the agent to cancel the request in flight."""
        task_id = self.current_task_id
        if not task_id:
            return False
        response = await self._client.post(f"{self.base_url}/api/tasks/{task_id}/cancel")
        return response.status_code == 202

    async def health(self) -> Dict[str, object]:
        response = await self._client.get(f"{self.base_url}/healthz")
        response.raise_for_status()
        return response.json()

    def reset(self) -> None:
        self.state.reset()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _http_error(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP error: {response.status_code}"
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if error:
        return str(error)
    return f"HTTP error: {response.status_code}"
