"""Provider factory and defaults."""

from __future__ import annotations

import os
from typing import Any, Dict

from .base import ChatProvider
from .scripted import ScriptedProvider
from .types import FunctionCall, FunctionResponse, GenerationConfig, LLMResponse, Message, ToolSchema

PROVIDER_DEFAULTS: Dict[str, Dict[str, str]] = {
    "anthropic": {"api_base": "", "env_key": "ANTHROPIC_API_KEY"},
    "gemini": {"api_base": "", "env_key": "GOOGLE_API_KEY"},
    "openai": {"api_base": "", "env_key": "OPENAI_API_KEY"},
    "deepseek": {"api_base": "https://api.deepseek.com", "env_key": "DEEPSEEK_API_KEY"},
    "stub": {"api_base": "", "env_key": ""},
}


def create_provider(
    provider: str,
    api_key: str,
    model: str,
    api_base: str = "",
    **kwargs: Any,
) -> ChatProvider:
    """Build a provider by name.

    SDK modules are imported lazily so that a process only needs the SDK of
    the vendor it actually talks to.

    Raises:
        ValueError: Unknown provider name or no API key available.
    """
    provider_name = (provider or "").lower()
    if provider_name not in PROVIDER_DEFAULTS:
        raise ValueError(f"Unknown provider: {provider!r}")

    if provider_name == "stub":
        return ScriptedProvider(steps=kwargs.get("steps"), model=model or "stub")

    api_key = _resolve_api_key(provider_name, api_key)

    if provider_name == "anthropic":
        from .anthropic import AnthropicProvider

        return AnthropicProvider(api_key=api_key, model=model, api_base=api_base)

    if provider_name == "gemini":
        from .gemini import GeminiProvider

        return GeminiProvider(api_key=api_key, model=model)

    from .openai_compat import OpenAICompatibleProvider

    base = api_base or PROVIDER_DEFAULTS[provider_name].get("api_base", "")
    return OpenAICompatibleProvider(api_key=api_key, model=model, api_base=base)


def _resolve_api_key(provider: str, api_key: str) -> str:
    env_key = PROVIDER_DEFAULTS.get(provider, {}).get("env_key", "")

    if api_key and not api_key.startswith("${"):
        return api_key

    if api_key.startswith("${") and api_key.endswith("}"):
        resolved = os.environ.get(api_key[2:-1], "")
        if resolved:
            return resolved

    if env_key:
        env_value = os.environ.get(env_key, "")
        if env_value:
            return env_value
        raise ValueError(f"{env_key} not set. Please set the env var or add api_key to config/config.local.yaml")

    raise ValueError("API key not set. Please set the env var or add api_key to config/config.local.yaml")


__all__ = [
    "ChatProvider",
    "FunctionCall",
    "FunctionResponse",
    "GenerationConfig",
    "LLMResponse",
    "Message",
    "PROVIDER_DEFAULTS",
    "ScriptedProvider",
    "ToolSchema",
    "create_provider",
]
