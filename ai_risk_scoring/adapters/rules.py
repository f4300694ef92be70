"""
Offline Rules Adapter.

Deterministic rule engine; no network, no state, never raises.

Verdict:
    security_concern  flash loan present AND price impact > 1500 bps
    suspicious        price impact > 800 bps
    normal            otherwise

Confidence is a fixed 0.2 for normal and 0.6 otherwise.
"""

from typing import List, Optional

from ai_risk_scoring.adapters.base import RiskModelAdapter
from ai_risk_scoring.descriptors import FLASH_LOAN_DETECTED, HIGH_PRICE_IMPACT
from ai_risk_scoring.types import (
    FeaturePayload,
    ModelDescriptor,
    ModelInfo,
    ModelResponseEnvelope,
    ModelResult,
    ScoreRequest,
    Verdict,
)


RULES_ADAPTER_NAME = "rules-offline"
RULES_ADAPTER_VERSION = "poc-v1"

SECURITY_CONCERN_IMPACT_BPS = 1500
SUSPICIOUS_IMPACT_BPS = 800
PRICE_IMPACT_SEVERITY_SCALE_BPS = 2000

NORMAL_CONFIDENCE = 0.2
ELEVATED_CONFIDENCE = 0.6


def _price_impact_bps(payload: FeaturePayload) -> Optional[int]:
    return payload.dex_route.price_impact_bps if payload.dex_route else None


class RulesAdapter(RiskModelAdapter):
    """Offline fallback adapter."""

    @property
    def name(self) -> str:
        return RULES_ADAPTER_NAME

    async def score(self, request: ScoreRequest) -> ModelResponseEnvelope:
        return ModelResponseEnvelope(
            request_hash=request.request_hash,
            model=ModelInfo(name=self.name, version=RULES_ADAPTER_VERSION),
            results=tuple(
                self.evaluate(item.tx_hash, item.payload) for item in request.transactions
            ),
        )

    def evaluate(self, tx_hash: str, payload: FeaturePayload) -> ModelResult:
        verdict = self.derive_verdict(payload)
        return ModelResult(
            tx_hash=tx_hash,
            verdict=verdict,
            confidence_overall=NORMAL_CONFIDENCE if verdict == Verdict.NORMAL else ELEVATED_CONFIDENCE,
            descriptors=tuple(self.build_descriptors(payload)),
            error=None,
        )

    @staticmethod
    def derive_verdict(payload: FeaturePayload) -> Verdict:
        impact = _price_impact_bps(payload) or 0
        if payload.flash_loan is not None and impact > SECURITY_CONCERN_IMPACT_BPS:
            return Verdict.SECURITY_CONCERN
        if impact > SUSPICIOUS_IMPACT_BPS:
            return Verdict.SUSPICIOUS
        return Verdict.NORMAL

    @staticmethod
    def build_descriptors(payload: FeaturePayload) -> List[ModelDescriptor]:
        descriptors = []

        # Zero impact carries no signal
        impact = _price_impact_bps(payload)
        if impact:
            descriptors.append(ModelDescriptor(
                id=HIGH_PRICE_IMPACT,
                severity=min(1.0, max(0.0, impact / PRICE_IMPACT_SEVERITY_SCALE_BPS)),
                confidence=0.5,
                why=f"Price impact {impact / 100:.2f}%",
            ))

        if payload.flash_loan is not None:
            descriptors.append(ModelDescriptor(
                id=FLASH_LOAN_DETECTED,
                severity=0.7,
                confidence=0.6,
                why="Flash-loan pattern observed in execution trace.",
            ))

        return descriptors
