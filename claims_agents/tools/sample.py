"""Tools backed by a small fixed sample of providers and claims.

They let the tool service, the agents and the CLI run end to end without a
claims database. Scoring here is a lookup of precomputed values, not an
analytics implementation.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .base import BaseTool, ToolResult

SAMPLE_PROVIDERS: List[Dict[str, Any]] = [
    {
        "providerId": "PRV52019",
        "name": "Lone Star Home Health",
        "specialty": "Home Health",
        "city": "Houston",
        "totalClaims": 4120,
        "totalReimbursement": 1893400.0,
        "riskScore": 92,
        "riskLevel": "critical",
        "flaggedForFraud": True,
        "patterns": ["billing after death", "upcoding", "excessive visit frequency"],
    },
    {
        "providerId": "PRV-1001",
        "name": "Gulf Coast Medical Supply",
        "specialty": "Durable Medical Equipment",
        "city": "Galveston",
        "totalClaims": 2875,
        "totalReimbursement": 1210050.0,
        "riskScore": 81,
        "riskLevel": "high",
        "flaggedForFraud": True,
        "patterns": ["shared beneficiaries", "equipment not delivered"],
    },
    {
        "providerId": "PRV-1002",
        "name": "Bayou Mobility Partners",
        "specialty": "Durable Medical Equipment",
        "city": "Houston",
        "totalClaims": 2310,
        "totalReimbursement": 978300.0,
        "riskScore": 74,
        "riskLevel": "high",
        "flaggedForFraud": False,
        "patterns": ["shared beneficiaries", "referral loop"],
    },
    {
        "providerId": "PRV-2040",
        "name": "Hill Country Family Practice",
        "specialty": "Family Medicine",
        "city": "Austin",
        "totalClaims": 640,
        "totalReimbursement": 96200.0,
        "riskScore": 18,
        "riskLevel": "low",
        "flaggedForFraud": False,
        "patterns": [],
    },
    {
        "providerId": "PRV-3311",
        "name": "Panhandle Diagnostics",
        "specialty": "Laboratory",
        "city": "Amarillo",
        "totalClaims": 1985,
        "totalReimbursement": 402700.0,
        "riskScore": 57,
        "riskLevel": "medium",
        "flaggedForFraud": False,
        "patterns": ["unbundled lab panels"],
    },
]

SAMPLE_DECEASED_CLAIMS: List[Dict[str, Any]] = [
    {
        "claimId": "CLM-880412",
        "providerId": "PRV52019",
        "beneficiaryId": "BEN-20931",
        "dateOfDeath": "2024-03-02",
        "claimDate": "2024-04-18",
        "daysAfterDeath": 47,
        "claimAmount": 2480.0,
    },
    {
        "claimId": "CLM-880977",
        "providerId": "PRV52019",
        "beneficiaryId": "BEN-31877",
        "dateOfDeath": "2024-01-15",
        "claimDate": "2024-01-29",
        "daysAfterDeath": 14,
        "claimAmount": 910.0,
    },
    {
        "claimId": "CLM-772301",
        "providerId": "PRV-1001",
        "beneficiaryId": "BEN-11820",
        "dateOfDeath": "2023-11-20",
        "claimDate": "2023-11-21",
        "daysAfterDeath": 1,
        "claimAmount": 3150.0,
    },
]

SAMPLE_RINGS: List[Dict[str, Any]] = [
    {
        "ringId": "RING-001",
        "providers": ["PRV-1001", "PRV-1002"],
        "sharedBeneficiaries": 38,
        "riskLevel": "high",
    },
]


def find_provider(provider_id: str) -> Optional[Dict[str, Any]]:
    for provider in SAMPLE_PROVIDERS:
        if provider["providerId"].lower() == str(provider_id).lower():
            return provider
    return None


def _not_found(provider_id: str) -> ToolResult:
    return ToolResult(success=False, error=f"Provider not found: {provider_id}")


class FindAnomaliesTool(BaseTool):
    name = "find_anomalies"
    description = "List providers whose billing deviates from the baseline."
    parameters = {"limit": {"type": "number"}, "threshold": {"type": "number"}}
    cacheable = True

    async def execute(self, limit: int = 10, threshold: float = 2.0, **kwargs: Any) -> ToolResult:
        cutoff = 50 + 10 * (float(threshold) - 2.0)
        flagged = sorted(
            (p for p in SAMPLE_PROVIDERS if p["riskScore"] >= cutoff),
            key=lambda p: p["totalReimbursement"],
            reverse=True,
        )[: int(limit)]
        anomalies = [
            {
                "anomalyId": f"ANM-{index + 1:03d}",
                "providerId": p["providerId"],
                "severity": p["riskLevel"] if p["riskLevel"] != "low" else "medium",
                "flaggedForFraud": p["flaggedForFraud"],
                "description": ", ".join(p["patterns"]) or "volume above baseline",
                "metrics": {"totalClaims": p["totalClaims"], "totalReimbursement": p["totalReimbursement"]},
            }
            for index, p in enumerate(flagged)
        ]
        return ToolResult(
            success=True,
            data={"threshold": threshold, "anomaliesDetected": len(anomalies), "anomalies": anomalies},
        )


class DetectFraudRingsTool(BaseTool):
    name = "detect_fraud_rings"
    description = "List provider groups that share an unusual number of beneficiaries."
    parameters = {"minSharedBeneficiaries": {"type": "number"}}
    cacheable = True

    async def execute(self, minSharedBeneficiaries: int = 3, **kwargs: Any) -> ToolResult:
        rings = [ring for ring in SAMPLE_RINGS if ring["sharedBeneficiaries"] >= int(minSharedBeneficiaries)]
        return ToolResult(
            success=True,
            data={
                "minSharedBeneficiaries": minSharedBeneficiaries,
                "ringsDetected": len(rings),
                "rings": rings,
                "summary": f"{len(rings)} potential fraud ring(s) detected",
            },
        )


class CheckDeceasedClaimsTool(BaseTool):
    name = "check_deceased_claims"
    description = "List claims dated after the beneficiary's death."
    parameters = {"limit": {"type": "number"}, "daysAfterDeath": {"type": "number"}, "providerId": {"type": "string"}}

    async def execute(
        self, limit: int = 10, daysAfterDeath: int = 0, providerId: Optional[str] = None, **kwargs: Any
    ) -> ToolResult:
        claims = [
            claim
            for claim in SAMPLE_DECEASED_CLAIMS
            if claim["daysAfterDeath"] >= int(daysAfterDeath)
            and (providerId is None or claim["providerId"] == providerId)
        ][: int(limit)]
        return ToolResult(
            success=True,
            data={"filterByProvider": providerId or "all", "totalDeceasedClaims": len(claims), "claims": claims},
        )


class SearchProvidersTool(BaseTool):
    name = "search_providers"
    description = "Search providers by name, specialty or city."
    parameters = {"query": {"type": "string", "required": True}, "limit": {"type": "number"}}

    async def execute(self, query: str, limit: int = 10, **kwargs: Any) -> ToolResult:
        needle = query.lower()
        matches = [
            {k: p[k] for k in ("providerId", "name", "specialty", "city", "riskLevel")}
            for p in SAMPLE_PROVIDERS
            if needle in " ".join((p["providerId"], p["name"], p["specialty"], p["city"])).lower()
        ][: int(limit)]
        return ToolResult(success=True, data={"query": query, "matchesFound": len(matches), "providers": matches})


class InvestigateProviderTool(BaseTool):
    name = "investigate_provider"
    description = "Full profile of one provider with risk indicators and deceased-claim findings."
    parameters = {"providerId": {"type": "string", "required": True}}
    cacheable = True

    async def execute(self, providerId: str, **kwargs: Any) -> ToolResult:
        provider = find_provider(providerId)
        if provider is None:
            return _not_found(providerId)
        deceased = [c for c in SAMPLE_DECEASED_CLAIMS if c["providerId"] == provider["providerId"]]
        return ToolResult(
            success=True,
            data={
                "providerId": provider["providerId"],
                "overallRiskLevel": provider["riskLevel"],
                "summary": f"{provider['name']} ({provider['specialty']}, {provider['city']}) "
                f"has risk score {provider['riskScore']}",
                "providerProfile": {
                    "totalClaims": provider["totalClaims"],
                    "totalReimbursement": provider["totalReimbursement"],
                    "avgClaimAmount": round(provider["totalReimbursement"] / provider["totalClaims"], 2),
                    "flaggedForFraud": provider["flaggedForFraud"],
                },
                "riskIndicators": [
                    {"type": pattern, "severity": provider["riskLevel"]} for pattern in provider["patterns"]
                ],
                "deceasedClaimsAnalysis": {
                    "count": len(deceased),
                    "totalAmount": sum(c["claimAmount"] for c in deceased),
                    "claims": deceased,
                },
            },
        )


class ExplainRiskScoreTool(BaseTool):
    name = "explain_risk_score"
    description = "Explain the factors behind a provider's risk score."
    parameters = {"providerId": {"type": "string", "required": True}}

    async def execute(self, providerId: str, **kwargs: Any) -> ToolResult:
        provider = find_provider(providerId)
        if provider is None:
            return _not_found(providerId)
        flagged = [p for p in SAMPLE_PROVIDERS if p["flaggedForFraud"]]
        below = sum(1 for p in SAMPLE_PROVIDERS if p["riskScore"] < provider["riskScore"])
        return ToolResult(
            success=True,
            data={
                "providerId": provider["providerId"],
                "currentRiskLevel": provider["riskLevel"],
                "riskScore": provider["riskScore"],
                "scoreBreakdown": provider["patterns"],
                "explanation": "Score reflects: " + (", ".join(provider["patterns"]) or "no notable patterns"),
                "comparisonToFlaggedProviders": {
                    "percentile": round(100 * below / len(SAMPLE_PROVIDERS)),
                    "totalFlaggedProviders": len(flagged),
                },
            },
        )


class SearchSimilarProvidersTool(BaseTool):
    name = "search_similar_providers"
    description = "Providers sharing billing patterns with a reference provider."
    parameters = {
        "providerId": {"type": "string", "required": True},
        "method": {"type": "string"},
        "limit": {"type": "number"},
    }

    async def execute(self, providerId: str, method: str = "statistical", limit: int = 10, **kwargs: Any) -> ToolResult:
        reference = find_provider(providerId)
        if reference is None:
            return _not_found(providerId)
        patterns = set(reference["patterns"])
        similar = [
            {
                "providerId": p["providerId"],
                "sharedPatterns": sorted(patterns & set(p["patterns"])),
                "riskLevel": p["riskLevel"],
            }
            for p in SAMPLE_PROVIDERS
            if p is not reference and (patterns & set(p["patterns"]) or p["specialty"] == reference["specialty"])
        ][: int(limit)]
        return ToolResult(
            success=True,
            data={
                "method": method,
                "referenceProvider": {
                    "providerId": reference["providerId"],
                    "flaggedForFraud": reference["flaggedForFraud"],
                },
                "matchesFound": len(similar),
                "similarProviders": similar,
            },
        )


class SearchFraudPatternsTool(BaseTool):
    name = "search_fraud_patterns"
    description = "Providers whose known patterns mention the query terms."
    parameters = {"query": {"type": "string", "required": True}, "limit": {"type": "number"}}

    async def execute(self, query: str, limit: int = 10, **kwargs: Any) -> ToolResult:
        terms = [term for term in query.lower().split() if len(term) > 3]
        matches = []
        for provider in SAMPLE_PROVIDERS:
            text = " ".join(provider["patterns"]).lower()
            hits = sum(1 for term in terms if term in text)
            if hits:
                matches.append({"providerId": provider["providerId"], "patterns": provider["patterns"], "hits": hits})
        matches.sort(key=lambda m: m["hits"], reverse=True)
        matches = matches[: int(limit)]
        return ToolResult(success=True, data={"query": query, "matchesFound": len(matches), "matches": matches})


def sample_tools() -> List[BaseTool]:
    """One instance of every sample-data tool."""
    return [
        FindAnomaliesTool(),
        DetectFraudRingsTool(),
        CheckDeceasedClaimsTool(),
        SearchProvidersTool(),
        InvestigateProviderTool(),
        ExplainRiskScoreTool(),
        SearchSimilarProvidersTool(),
        SearchFraudPatternsTool(),
    ]
