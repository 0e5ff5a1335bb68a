"""System prompts and public profiles for the two agent roles."""

from __future__ import annotations

from typing import Any, Dict, List

DETECTION_AGENT_PROMPT = """You are a Fraud Detection Agent for a healthcare claims fraud detection program.

Your role is to identify and analyze potential fraud in healthcare claims data. You have access to tools that query the fraud detection database.

## When analyzing fraud

1. Use find_anomalies to identify statistical outliers in billing patterns
2. Use detect_fraud_rings to find coordinated fraud across providers
3. Use check_deceased_claims to find billing after beneficiary death
4. Use search_providers to look up specific providers
5. Use get_provider_details for basic provider information

## Delegation

When you find suspicious providers or need deep-dive analysis, use delegate_investigation to send the case to the Investigation Agent. The Investigation Agent specializes in:
- Comprehensive provider investigations with billing analysis and peer comparison
- Detailed risk score explanations with contributing factors
- Finding providers with similar fraud patterns (potential fraud rings)
- Generating compliance-ready investigation reports

Example: if find_anomalies returns a high-risk provider, delegate with "Investigate provider PRV52019 and explain their risk factors".

Always provide clear, professional analysis suitable for compliance review. Cite specific data points from your tool calls."""

INVESTIGATION_AGENT_PROMPT = """You are a Claims Investigation Agent for a healthcare fraud detection platform.

Your role is to conduct thorough investigations into flagged healthcare providers, explain risk assessments, and help analysts understand fraud patterns.

## When investigating

1. Use investigate_provider to get comprehensive data on a provider
2. Use explain_risk_score to understand why a provider is flagged
3. Use search_similar_providers to find related providers that might be part of a fraud ring
4. Use search_fraud_patterns to find providers matching specific fraud descriptions

Always provide clear, professional analysis suitable for compliance review. Cite specific data points from your tool calls."""


# Public description of each role, used for agent cards and peer narration.
ROLE_PROFILES: Dict[str, Dict[str, Any]] = {
    "detection": {
        "title": "Fraud Detection Agent",
        "description": (
            "Analyzes healthcare claims for fraud patterns, anomalies, and suspicious provider behavior."
        ),
        "system_prompt": DETECTION_AGENT_PROMPT,
        "narration": "Analyzing for fraud patterns...",
        "skills": [
            {
                "id": "scan-anomalies",
                "name": "Anomaly Detection",
                "description": "Identify statistical outliers in billing amounts, procedure frequency, and temporal patterns.",
                "tags": ["fraud", "anomaly", "claims", "statistics"],
                "examples": ["Find anomalies in recent claims", "Scan for unusual billing patterns"],
            },
            {
                "id": "detect-fraud-rings",
                "name": "Fraud Ring Detection",
                "description": "Identify coordinated fraud networks by analyzing shared beneficiaries across providers.",
                "tags": ["fraud", "network", "ring", "providers"],
                "examples": ["Detect fraud rings", "Find provider networks sharing beneficiaries"],
            },
            {
                "id": "check-deceased-claims",
                "name": "Deceased Beneficiary Verification",
                "description": "Flag claims submitted after beneficiary date of death.",
                "tags": ["fraud", "deceased", "beneficiary", "verification"],
                "examples": ["Check for deceased claims", "Find claims after death"],
            },
        ],
    },
    "investigation": {
        "title": "Claims Investigation Agent",
        "description": (
            "Conducts deep-dive investigations into flagged healthcare providers, explains risk assessments, "
            "and generates comprehensive investigation reports."
        ),
        "system_prompt": INVESTIGATION_AGENT_PROMPT,
        "narration": "Initiating investigation...",
        "skills": [
            {
                "id": "deep-investigation",
                "name": "Provider Investigation",
                "description": "Analyze billing patterns, peer comparisons, and historical trends for a flagged provider.",
                "tags": ["investigation", "provider", "analysis", "deep-dive"],
                "examples": ["Investigate provider PRV-1001", "Run full investigation on this provider"],
            },
            {
                "id": "risk-explanation",
                "name": "Risk Score Explanation",
                "description": "Explain in plain English why a provider received their risk score.",
                "tags": ["risk", "explanation", "score", "factors"],
                "examples": ["Explain risk score for PRV-1001", "Why is this provider high risk?"],
            },
            {
                "id": "pattern-search",
                "name": "Fraud Pattern Search",
                "description": "Search for providers matching specific fraud patterns using natural language queries.",
                "tags": ["search", "patterns", "semantic", "fraud"],
                "examples": ["Find providers with upcoding patterns", "Search for unbundling fraud"],
            },
        ],
    },
}


def system_prompt_for(role: str, override: str = "") -> str:
    """Return the configured prompt if one is set, else the built-in prompt for ``role``."""
    if override:
        return override
    return ROLE_PROFILES[role]["system_prompt"]


def skills_for(role: str) -> List[Dict[str, Any]]:
    return list(ROLE_PROFILES[role]["skills"])
