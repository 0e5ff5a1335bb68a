"""Configuration validator for startup checks."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .config import AppConfig, ROLES
from .providers import PROVIDER_DEFAULTS


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass
class ConfigIssue:
    """A single configuration issue."""

    field: str
    message: str
    severity: Severity


def validate_config(config: AppConfig, role: Optional[str] = None) -> List[ConfigIssue]:
    """Validate settings and return a list of issues.

    Args:
        config: Loaded configuration
        role: Only check this agent role (all roles when omitted)

    Returns:
        List of ConfigIssue (empty = valid)
    """
    issues: List[ConfigIssue] = []

    for name in [role] if role else list(ROLES):
        agent = config.agent(name)
        prefix = f"agents.{name}"

        if agent.provider not in PROVIDER_DEFAULTS:
            issues.append(ConfigIssue(
                field=f"{prefix}.provider",
                message=f"unknown provider {agent.provider!r}; expected one of {', '.join(sorted(PROVIDER_DEFAULTS))}",
                severity=Severity.ERROR,
            ))
        elif PROVIDER_DEFAULTS[agent.provider].get("env_key") and not agent.api_key:
            env_key = PROVIDER_DEFAULTS[agent.provider]["env_key"]
            issues.append(ConfigIssue(
                field=f"{prefix}.api_key",
                message=f"{env_key} not set. Set the env var or add api_key to config/config.local.yaml",
                severity=Severity.ERROR,
            ))

        if not agent.model:
            issues.append(ConfigIssue(
                field=f"{prefix}.model",
                message="model must be a non-empty string",
                severity=Severity.ERROR,
            ))

        if not isinstance(agent.max_iterations, int) or agent.max_iterations < 1:
            issues.append(ConfigIssue(
                field=f"{prefix}.max_iterations",
                message=f"max_iterations must be a positive integer, got {agent.max_iterations!r}",
                severity=Severity.ERROR,
            ))

        if agent.temperature is not None and not 0 <= agent.temperature <= 2:
            issues.append(ConfigIssue(
                field=f"{prefix}.temperature",
                message=f"temperature must be a number between 0 and 2, got {agent.temperature}",
                severity=Severity.ERROR,
            ))

        if not 0 < agent.port < 65536:
            issues.append(ConfigIssue(
                field=f"{prefix}.port",
                message=f"port must be between 1 and 65535, got {agent.port}",
                severity=Severity.ERROR,
            ))

        if agent.task_timeout_seconds == 0:
            issues.append(ConfigIssue(
                field=f"{prefix}.task_timeout_seconds",
                message="task deadline disabled; a stuck reasoner will hold the task open",
                severity=Severity.WARNING,
            ))

    if not config.tools.url.startswith(("http://", "https://")):
        issues.append(ConfigIssue(
            field="tools.url",
            message=f"tools.url must be an http(s) URL, got {config.tools.url!r}",
            severity=Severity.ERROR,
        ))

    if config.delegation.channel_size < 1:
        issues.append(ConfigIssue(
            field="delegation.channel_size",
            message="delegation.channel_size must be at least 1",
            severity=Severity.ERROR,
        ))

    if config.delegation.timeout_seconds <= 0:
        issues.append(ConfigIssue(
            field="delegation.timeout_seconds",
            message="delegation.timeout_seconds must be positive",
            severity=Severity.ERROR,
        ))

    return issues


def has_errors(issues: List[ConfigIssue]) -> bool:
    """Return True if any issue is an ERROR."""
    return any(issue.severity == Severity.ERROR for issue in issues)
