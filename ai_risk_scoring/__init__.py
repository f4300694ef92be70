"""
AI Risk Scoring.

============================================================
PURPOSE
============================================================
Assigns a machine-generated risk verdict (normal, suspicious,
security_concern) to individual blockchain transactions and
persists a normalized, versioned result keyed by tx hash.

============================================================
PIPELINE
============================================================
1. CalldataDecoder      known router swaps -> swap intent
2. Heuristics           flash loan, route / price impact, fee
3. FeatureExtractor     canonical FeaturePayload
4. compute_request_hash stable content hash
5. RiskModelAdapter     remote model or offline rules
6. validate_model_response
7. normalize_model_response
8. AiRiskScoringService wires it together, contains failures

============================================================
"""

from ai_risk_scoring.adapters import (
    RemoteModelAdapter,
    RiskModelAdapter,
    RulesAdapter,
    select_adapter,
)
from ai_risk_scoring.calldata import CalldataDecoder, KNOWN_FUNCTIONS
from ai_risk_scoring.config import AiScoringConfig, ModelSettings, load_config_from_env
from ai_risk_scoring.exceptions import (
    AiRiskScoringError,
    ConfigurationError,
    ModelAdapterError,
    ModelRequestError,
    ModelResponseFormatError,
    ModelTimeoutError,
    ResponseValidationError,
)
from ai_risk_scoring.features import (
    FeatureExtractor,
    StaticTokenMetadataProvider,
    TokenMetadataProvider,
    build_feature_payload,
)
from ai_risk_scoring.hashing import canonical_json, compute_request_hash
from ai_risk_scoring.heuristics import (
    FLASH_LOAN_EVENT_TOPICS,
    compute_fee_paid,
    derive_dex_route,
    detect_flash_loan,
)
from ai_risk_scoring.normalize import NORMALIZER_VERSION, normalize_model_response
from ai_risk_scoring.service import (
    AiRiskScoringService,
    RiskScoreStore,
    create_scoring_service,
)
from ai_risk_scoring.types import (
    AdapterMode,
    BlockInfo,
    FeaturePayload,
    ModelResponseEnvelope,
    NormalizedRiskScore,
    ScoreRequest,
    ScoreStatus,
    SeverityBucket,
    TransactionData,
    Verdict,
)
from ai_risk_scoring.validation import validate_model_response


__all__ = [
    # Adapters
    "RiskModelAdapter",
    "RemoteModelAdapter",
    "RulesAdapter",
    "select_adapter",
    # Decoding / features
    "CalldataDecoder",
    "KNOWN_FUNCTIONS",
    "FeatureExtractor",
    "StaticTokenMetadataProvider",
    "TokenMetadataProvider",
    "build_feature_payload",
    "FLASH_LOAN_EVENT_TOPICS",
    "compute_fee_paid",
    "derive_dex_route",
    "detect_flash_loan",
    # Hashing / validation / normalization
    "canonical_json",
    "compute_request_hash",
    "validate_model_response",
    "normalize_model_response",
    "NORMALIZER_VERSION",
    # Service
    "AiRiskScoringService",
    "RiskScoreStore",
    "create_scoring_service",
    # Config
    "AiScoringConfig",
    "ModelSettings",
    "load_config_from_env",
    # Types
    "AdapterMode",
    "BlockInfo",
    "FeaturePayload",
    "ModelResponseEnvelope",
    "NormalizedRiskScore",
    "ScoreRequest",
    "ScoreStatus",
    "SeverityBucket",
    "TransactionData",
    "Verdict",
    # Exceptions
    "AiRiskScoringError",
    "ConfigurationError",
    "ModelAdapterError",
    "ModelRequestError",
    "ModelResponseFormatError",
    "ModelTimeoutError",
    "ResponseValidationError",
]
