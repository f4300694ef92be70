"""
Pydantic Schemas for the AI Risk Score read API.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from ai_risk_scoring.types import NormalizedRiskScore, ScoreStatus, SeverityBucket, Verdict


# =============================================================
# RESPONSE SCHEMAS
# =============================================================

class AiRiskDescriptorResponse(BaseModel):
    """One normalized descriptor. severity is the bucket, severityScore the number."""
    id: str
    label: str
    severity: SeverityBucket
    severity_score: float = Field(alias="severityScore")
    confidence: float
    why: Optional[str] = None

    class Config:
        populate_by_name = True


class AiRiskScoreResponse(BaseModel):
    """Stored AI risk score for a transaction."""
    tx_hash: str = Field(alias="txHash")
    request_hash: str = Field(alias="requestHash")
    feature_version: str = Field(alias="featureVersion")
    normalizer_version: str = Field(alias="normalizerVersion")
    model_name: str = Field(alias="modelName")
    model_version: str = Field(alias="modelVersion")
    verdict: Verdict
    confidence_overall: float = Field(alias="confidenceOverall")
    descriptors: List[AiRiskDescriptorResponse]
    status: ScoreStatus
    error: Optional[str] = None
    requested_at: datetime = Field(alias="requestedAt")
    received_at: datetime = Field(alias="receivedAt")

    class Config:
        populate_by_name = True
        protected_namespaces = ()

    @classmethod
    def from_score(cls, score: NormalizedRiskScore) -> "AiRiskScoreResponse":
        return cls(
            tx_hash=score.tx_hash,
            request_hash=score.request_hash,
            feature_version=score.feature_version,
            normalizer_version=score.normalizer_version,
            model_name=score.model_name,
            model_version=score.model_version,
            verdict=score.verdict,
            confidence_overall=score.confidence_overall,
            descriptors=[
                AiRiskDescriptorResponse(
                    id=descriptor.id,
                    label=descriptor.label,
                    severity=descriptor.severity_bucket,
                    severity_score=descriptor.severity_score,
                    confidence=descriptor.confidence,
                    why=descriptor.why,
                )
                for descriptor in score.descriptors
            ],
            status=score.status,
            error=score.error,
            requested_at=score.requested_at,
            received_at=score.received_at,
        )
