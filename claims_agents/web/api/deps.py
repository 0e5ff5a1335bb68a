"""Dependency providers for the agent API."""

from __future__ import annotations

from fastapi import Request

from ..runtime import AgentRuntime


def get_runtime(request: Request) -> AgentRuntime:
    """Access the agent runtime from app state."""
    return request.app.state.runtime
