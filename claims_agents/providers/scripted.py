"""Deterministic provider that replays a fixed script of replies.

Used by the test suite and by ``provider: stub`` in configuration to run the
agents offline.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Any, Callable, List, Optional, Sequence, Union

from .types import FunctionCall, GenerationConfig, LLMResponse, Message, ToolSchema

_call_ids = itertools.count(1)

ScriptStep = Union[LLMResponse, Exception, Callable[[List[Message]], LLMResponse]]


class ScriptedProvider:
    """Returns the next scripted step on every ``generate`` call.

    A step is an ``LLMResponse``, an exception to raise, or a callable that
    builds a response from the transcript. Once the script is exhausted the
    ``fallback`` reply is returned.
    """

    def __init__(
        self,
        steps: Optional[Sequence[ScriptStep]] = None,
        model: str = "stub",
        fallback: Optional[LLMResponse] = None,
        delay_seconds: float = 0.0,
    ) -> None:
        self.model = model
        self._steps: List[ScriptStep] = list(steps or [])
        self.fallback = fallback or LLMResponse(text="No findings.", stop_reason="end_turn")
        self.delay_seconds = delay_seconds
        self.calls: List[List[Message]] = []

    async def generate(
        self,
        messages: List[Message],
        tools: Optional[List[ToolSchema]],
        config: GenerationConfig,
    ) -> LLMResponse:
        self.calls.append(list(messages))
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if not self._steps:
            return self.fallback
        step = self._steps.pop(0)
        if isinstance(step, Exception):
            raise step
        if callable(step):
            return step(messages)
        return step


def reply(text: str = "", calls: Optional[List[Any]] = None, thinking: Optional[str] = None) -> LLMResponse:
    """Build a scripted reply; ``calls`` items are FunctionCall or (name, args[, id]) tuples."""
    function_calls: List[FunctionCall] = []
    for call in calls or []:
        if isinstance(call, FunctionCall):
            function_calls.append(call)
            continue
        name, args, *rest = call
        call_id = rest[0] if rest else f"call_{next(_call_ids)}"
        function_calls.append(FunctionCall(name=name, arguments=dict(args), id=call_id))
    return LLMResponse(
        text=text,
        function_calls=function_calls,
        stop_reason="tool_use" if function_calls else "end_turn",
        thinking=thinking,
    )
