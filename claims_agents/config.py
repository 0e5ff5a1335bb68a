"""Configuration loading for the agents, the tool service and the client."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CLAIMS_AGENTS_CONFIG"
DEFAULT_CONFIG_PATH = "config/config.yaml"
LOCAL_CONFIG_NAME = "config.local.yaml"

PRIMARY_ROLE = "detection"
DELEGATE_ROLE = "investigation"
ROLES = (PRIMARY_ROLE, DELEGATE_ROLE)

_PLACEHOLDER = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass
class AgentSettings:
    """Settings for one agent role."""

    name: str
    display_name: str
    vendor: str
    provider: str
    model: str
    port: int
    api_key: str = ""
    api_base: str = ""
    host: str = "127.0.0.1"
    url: str = ""
    public_url: str = ""
    max_tokens: int = 4096
    temperature: Optional[float] = None
    max_iterations: int = 10
    task_timeout_seconds: float = 600.0
    system_prompt: str = ""

    def __post_init__(self) -> None:
        if not self.url:
            self.url = f"http://localhost:{self.port}"
        if not self.public_url:
            self.public_url = self.url


@dataclass
class ToolSettings:
    """Tool service location and client behavior."""

    url: str = "http://localhost:3004"
    host: str = "127.0.0.1"
    port: int = 3004
    timeout_seconds: float = 30.0
    max_connections: int = 20
    max_keepalive_connections: int = 10
    retry_attempts: int = 3
    retry_base_delay: float = 0.5
    cache_ttl_seconds: float = 300.0
    cache_max_entries: int = 1024
    audit_capacity: int = 1000


@dataclass
class DelegationSettings:
    tool_name: str = "delegate_investigation"
    timeout_seconds: float = 300.0
    channel_size: int = 64


@dataclass
class AppConfig:
    agents: Dict[str, AgentSettings]
    tools: ToolSettings = field(default_factory=ToolSettings)
    delegation: DelegationSettings = field(default_factory=DelegationSettings)
    log_level: str = "INFO"
    source: Optional[str] = None

    @property
    def primary(self) -> AgentSettings:
        return self.agents[PRIMARY_ROLE]

    @property
    def delegate(self) -> AgentSettings:
        return self.agents[DELEGATE_ROLE]

    def agent(self, role: str) -> AgentSettings:
        try:
            return self.agents[role]
        except KeyError:
            raise ValueError(f"Unknown agent role: {role!r} (expected one of {', '.join(ROLES)})") from None


DEFAULT_AGENTS: Dict[str, Dict[str, Any]] = {
    PRIMARY_ROLE: {
        "name": PRIMARY_ROLE,
        "display_name": "Detection Agent",
        "vendor": "anthropic",
        "provider": "anthropic",
        "model": "claude-sonnet-4-20250514",
        "port": 3002,
        "api_key": "${ANTHROPIC_API_KEY}",
    },
    DELEGATE_ROLE: {
        "name": DELEGATE_ROLE,
        "display_name": "Investigation Agent",
        "vendor": "google",
        "provider": "gemini",
        "model": "gemini-2.5-flash",
        "port": 3003,
        "api_key": "${GOOGLE_API_KEY}",
    },
}

# Environment variables that take priority over file values.
ENV_OVERRIDES = {
    "DETECTION_AGENT_PORT": ("agents", PRIMARY_ROLE, "port"),
    "INVESTIGATION_AGENT_PORT": ("agents", DELEGATE_ROLE, "port"),
    "DETECTION_AGENT_URL": ("agents", PRIMARY_ROLE, "url"),
    "INVESTIGATION_AGENT_URL": ("agents", DELEGATE_ROLE, "url"),
    "DETECTION_AGENT_PUBLIC_URL": ("agents", PRIMARY_ROLE, "public_url"),
    "INVESTIGATION_AGENT_PUBLIC_URL": ("agents", DELEGATE_ROLE, "public_url"),
    "TOOL_SERVICE_URL": ("tools", "url"),
}


def resolve_placeholders(value: Any) -> Any:
    """Replace ``${VAR}`` occurrences with environment values (missing -> empty)."""
    if isinstance(value, str):
        return _PLACEHOLDER.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {key: resolve_placeholders(item) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_placeholders(item) for item in value]
    return value


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        base_value = merged.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(base_value, value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must be a mapping: {path}")
    return data


def load_raw_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load the raw configuration mapping.

    The file is taken from ``config_path``, else ``$CLAIMS_AGENTS_CONFIG``, else
    ``config/config.yaml``. A sibling ``config.local.yaml`` is overlaid on top
    when present. A missing file yields an empty mapping (built-in defaults).
    """
    path = Path(config_path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)
    if config_path and not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    base = _load_yaml(path)
    local = _load_yaml(path.with_name(LOCAL_CONFIG_NAME))
    return _deep_merge(base, local)


def apply_env_overrides(raw: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    env = os.environ if environ is None else environ
    result = _deep_merge({}, raw)
    for var, path in ENV_OVERRIDES.items():
        value = env.get(var)
        if not value:
            continue
        node = result
        for key in path[:-1]:
            node = node.setdefault(key, {})
        node[path[-1]] = int(value) if path[-1] == "port" else value
    return result


def build_config(raw: Dict[str, Any], source: Optional[str] = None) -> AppConfig:
    """Turn a raw (already overridden) mapping into typed settings."""
    raw = resolve_placeholders(_deep_merge({"agents": DEFAULT_AGENTS}, raw))
    agents: Dict[str, AgentSettings] = {}
    for role in ROLES:
        values = dict(raw["agents"].get(role) or resolve_placeholders(DEFAULT_AGENTS[role]))
        values["name"] = role
        agents[role] = AgentSettings(**_known_fields(AgentSettings, values))

    return AppConfig(
        agents=agents,
        tools=ToolSettings(**_known_fields(ToolSettings, raw.get("tools") or {})),
        delegation=DelegationSettings(**_known_fields(DelegationSettings, raw.get("delegation") or {})),
        log_level=str(raw.get("log_level") or "INFO").upper(),
        source=source,
    )


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load, override and type the configuration in one step."""
    raw = apply_env_overrides(load_raw_config(config_path))
    source = config_path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
    return build_config(raw, source=source)


def _known_fields(cls: type, values: Dict[str, Any]) -> Dict[str, Any]:
    known = set(cls.__dataclass_fields__)
    unknown: List[str] = sorted(set(values) - known)
    if unknown:
        logger.warning("Ignoring unknown %s keys: %s", cls.__name__, ", ".join(unknown))
    return {key: value for key, value in values.items() if key in known}
