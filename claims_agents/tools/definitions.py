"""Tool declarations exposed to each agent's reasoner."""

from __future__ import annotations

from typing import Dict, List

from ..config import DELEGATE_ROLE, PRIMARY_ROLE
from ..providers.types import ToolSchema
from .base import tool_schema

DELEGATION_TOOL = "delegate_investigation"

# Agent-facing name -> tool service name.
TOOL_ALIASES: Dict[str, str] = {
    "get_provider_details": "investigate_provider",
}

_LIMIT = {"type": "number", "description": "Maximum number of results to return (default: 10)"}
_PROVIDER_ID = {
    "type": "string",
    "description": "The provider ID (e.g., PRV-1001 or PRV52019)",
    "required": True,
}

DETECTION_TOOLS: List[ToolSchema] = [
    tool_schema(
        "find_anomalies",
        "Find statistical anomalies in claims data. Returns providers with unusual billing patterns, "
        "outlier amounts, or suspicious frequencies.",
        {
            "limit": _LIMIT,
            "threshold": {"type": "number", "description": "Z-score threshold for anomaly detection (default: 2.0)"},
        },
    ),
    tool_schema(
        "detect_fraud_rings",
        "Detect potential fraud rings by analyzing shared beneficiaries, referral patterns, and coordinated "
        "billing across providers.",
        {
            "minSharedBeneficiaries": {
                "type": "number",
                "description": "Minimum shared beneficiaries to flag as potential ring (default: 3)",
            },
        },
    ),
    tool_schema(
        "check_deceased_claims",
        "Find claims submitted after beneficiary death dates. Critical for identifying billing fraud.",
        {
            "limit": _LIMIT,
            "daysAfterDeath": {"type": "number", "description": "Minimum days after death to flag (default: 0)"},
        },
    ),
    tool_schema(
        "search_providers",
        "Search for providers by name, specialty, or location. Use this to look up specific providers.",
        {
            "query": {
                "type": "string",
                "description": "Search query (provider name, specialty, or location)",
                "required": True,
            },
            "limit": _LIMIT,
        },
    ),
    tool_schema(
        "get_provider_details",
        "Get detailed information about a specific provider including claims history, risk score, and "
        "billing patterns.",
        {"providerId": _PROVIDER_ID},
    ),
    tool_schema(
        DELEGATION_TOOL,
        "Delegate a deep-dive investigation to the Investigation Agent. Use this when you find suspicious "
        "providers that need thorough investigation, risk score explanation, or when searching for similar "
        "fraud patterns.",
        {
            "request": {
                "type": "string",
                "description": "The investigation request. Be specific about what you want investigated "
                '(e.g., "Investigate provider PRV52019 and explain their risk score")',
                "required": True,
            },
        },
    ),
]

INVESTIGATION_TOOLS: List[ToolSchema] = [
    tool_schema(
        "investigate_provider",
        "Run a comprehensive fraud investigation on a specific provider. Returns billing analysis, peer "
        "comparison, temporal patterns, and risk indicators.",
        {"providerId": _PROVIDER_ID},
    ),
    tool_schema(
        "explain_risk_score",
        "Get a detailed explanation of why a provider has their current risk score, including contributing "
        "factors and evidence.",
        {"providerId": _PROVIDER_ID},
    ),
    tool_schema(
        "search_similar_providers",
        "Find providers with similar billing patterns to a reference provider. Useful for identifying "
        "potential fraud rings.",
        {
            "providerId": _PROVIDER_ID,
            "method": {
                "type": "string",
                "description": 'Search method: "statistical" for billing patterns, "semantic" for embeddings',
                "enum": ["statistical", "semantic"],
            },
            "limit": _LIMIT,
        },
    ),
    tool_schema(
        "search_fraud_patterns",
        "Search for providers matching a natural language description of fraud patterns.",
        {
            "query": {
                "type": "string",
                "description": "Natural language description of fraud pattern to search for",
                "required": True,
            },
            "limit": _LIMIT,
        },
    ),
]

TOOLS_BY_ROLE: Dict[str, List[ToolSchema]] = {
    PRIMARY_ROLE: DETECTION_TOOLS,
    DELEGATE_ROLE: INVESTIGATION_TOOLS,
}


def service_tool_name(name: str) -> str:
    """Name under which the tool service knows an agent-facing tool."""
    return TOOL_ALIASES.get(name, name)
