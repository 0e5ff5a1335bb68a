"""Stateful reasoning session over a chat provider."""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Protocol

from ..errors import ReasonerError
from ..observability import AgentObserver
from ..providers import create_provider
from ..providers.base import ChatProvider
from ..providers.types import FunctionResponse, GenerationConfig, LLMResponse, Message, ToolSchema
from ..retry import RetryConfig, retry_with_backoff

logger = logging.getLogger(__name__)


class Reasoner(Protocol):
    """One task's conversation with a model: a user turn, then tool-result turns."""

    model: str

    async def send(self, text: str) -> LLMResponse: ...

    async def send_tool_results(self, results: List[FunctionResponse]) -> LLMResponse: ...


ReasonerFactory = Callable[[], Reasoner]


class ConversationReasoner:
    """Keeps the transcript for one task and calls the provider with retry.

    Any failure after retries is raised as ``ReasonerError`` so the executor
    can fail the task uniformly, whatever SDK produced it.
    """

    def __init__(
        self,
        provider: ChatProvider,
        tools: Optional[List[ToolSchema]] = None,
        generation: Optional[GenerationConfig] = None,
        retry: Optional[RetryConfig] = None,
        observer: Optional[AgentObserver] = None,
    ) -> None:
        self.provider = provider
        self.model = getattr(provider, "model", "unknown")
        self.tools = tools or None
        self.generation = generation or GenerationConfig()
        self.retry = retry or RetryConfig()
        self.observer = observer
        self.history: List[Message] = []
        self._round = 0

    async def send(self, text: str) -> LLMResponse:
        self.history.append(Message.user(text))
        return await self._call()

    async def send_tool_results(self, results: List[FunctionResponse]) -> LLMResponse:
        self.history.append(Message.tool_response(results))
        return await self._call()

    async def _call(self) -> LLMResponse:
        started = time.perf_counter()
        try:
            response = await retry_with_backoff(
                self.provider.generate,
                self.retry,
                list(self.history),
                self.tools,
                self.generation,
            )
        except ReasonerError:
            raise
        except Exception as e:
            raise ReasonerError(f"{self.model} request failed: {e}") from e

        if self.observer is not None:
            self.observer.log_llm_request(
                model=self.model,
                iteration=self._round,
                duration_ms=(time.perf_counter() - started) * 1000,
                tool_calls=len(response.function_calls),
            )
        self._round += 1
        self.history.append(Message.assistant(response.text, response.function_calls))
        return response


def reasoner_factory_for(
    provider_name: str,
    model: str,
    api_key: str,
    system_prompt: str,
    tools: List[ToolSchema],
    api_base: str = "",
    max_tokens: int = 4096,
    temperature: Optional[float] = None,
    observer: Optional[AgentObserver] = None,
) -> ReasonerFactory:
    """Factory producing a fresh reasoner per task.

    Provider construction happens inside the factory so that a missing API
    key fails the task (as a ``ReasonerError``) rather than server startup.
    """

    generation = GenerationConfig(system_prompt=system_prompt, max_tokens=max_tokens, temperature=temperature)

    def factory() -> Reasoner:
        try:
            provider = create_provider(provider_name, api_key=api_key, model=model, api_base=api_base)
        except ValueError as e:
            raise ReasonerError(str(e)) from e
        return ConversationReasoner(provider, tools=tools, generation=generation, observer=observer)

    return factory
