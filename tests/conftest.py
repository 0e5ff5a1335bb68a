"""Global pytest fixtures for deterministic test environment."""

from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _isolate_runtime_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear local runtime env that can leak into tests on developer machines."""
    for key in (
        "CLAIMS_AGENTS_CONFIG",
        "ANTHROPIC_API_KEY",
        "GOOGLE_API_KEY",
        "OPENAI_API_KEY",
        "DEEPSEEK_API_KEY",
        "DETECTION_AGENT_URL",
        "INVESTIGATION_AGENT_URL",
        "DETECTION_AGENT_PORT",
        "INVESTIGATION_AGENT_PORT",
        "DETECTION_AGENT_PUBLIC_URL",
        "INVESTIGATION_AGENT_PUBLIC_URL",
        "TOOL_SERVICE_URL",
    ):
        monkeypatch.delenv(key, raising=False)
