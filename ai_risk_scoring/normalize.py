"""
Normalizer.

Turns a validated model envelope into persisted score records:
clamps scores into [0, 1], buckets descriptor severity, resolves
descriptor labels and stamps version metadata.
"""

import math
from datetime import datetime, timezone
from typing import List, Optional

from ai_risk_scoring.descriptors import descriptor_label
from ai_risk_scoring.types import (
    ModelResponseEnvelope,
    NormalizedDescriptor,
    NormalizedRiskScore,
    ScoreStatus,
    SeverityBucket,
)


NORMALIZER_VERSION = "tx-risk-normalizer/poc-v1"


def clamp_unit(value: Optional[float]) -> float:
    """Clamp into [0, 1]; missing or NaN counts as 0."""
    if value is None or math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, float(value)))


def normalize_model_response(
    envelope: ModelResponseEnvelope,
    feature_version: str,
    now: Optional[datetime] = None,
) -> List[NormalizedRiskScore]:
    """
    Normalize every result in the envelope, preserving order.

    Args:
        envelope: Validated model response
        feature_version: Feature payload version that was scored
        now: Timestamp for requested_at/received_at (defaults to UTC now)
    """
    stamp = now or datetime.now(timezone.utc)
    raw_response = envelope.raw if envelope.raw is not None else envelope.to_dict()

    scores = []
    for result in envelope.results:
        descriptors = []
        for descriptor in result.descriptors:
            severity = clamp_unit(descriptor.severity)
            descriptors.append(NormalizedDescriptor(
                id=descriptor.id,
                label=descriptor_label(descriptor.id),
                severity_score=severity,
                severity_bucket=SeverityBucket.from_score(severity),
                confidence=clamp_unit(descriptor.confidence),
                why=descriptor.why,
            ))

        scores.append(NormalizedRiskScore(
            tx_hash=result.tx_hash,
            request_hash=envelope.request_hash,
            feature_version=feature_version,
            normalizer_version=NORMALIZER_VERSION,
            model_name=envelope.model.name,
            model_version=envelope.model.version,
            verdict=result.verdict,
            confidence_overall=clamp_unit(result.confidence_overall),
            descriptors=tuple(descriptors),
            raw_response=raw_response,
            status=ScoreStatus.ERROR if result.error is not None else ScoreStatus.OK,
            error=result.error,
            requested_at=stamp,
            received_at=stamp,
        ))

    return scores
