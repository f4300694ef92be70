"""
AI Risk Scoring - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for the transaction risk-scoring pipeline.

Covers three groups of types:
1. Chain-data inputs supplied by the upstream fetcher
2. The canonical feature payload sent to a risk model
3. Model response envelopes and the normalized, persisted score

============================================================
DESIGN PRINCIPLES
============================================================
- Immutable dataclasses for every contract
- Optional fields are None when absent and are OMITTED from
  serialized payloads (never written as null), so request
  hashes stay stable when new optional signals are added
- Addresses and hex data are lower-cased before they reach
  these types
- Token amounts, gas values and fees are decimal strings

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


NumberLike = Union[int, str]


def _without_none(values: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None."""
    return {key: value for key, value in values.items() if value is not None}


# ============================================================
# ENUMS
# ============================================================


class Verdict(str, Enum):
    """Overall verdict assigned to one transaction."""

    NORMAL = "normal"
    SUSPICIOUS = "suspicious"
    SECURITY_CONCERN = "security_concern"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


class SeverityBucket(str, Enum):
    """
    Coarse severity band for a descriptor.

    - LOW: score < 0.34
    - MEDIUM: 0.34 <= score < 0.67
    - HIGH: score >= 0.67
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_score(cls, score: float) -> "SeverityBucket":
        if score < 0.34:
            return cls.LOW
        if score < 0.67:
            return cls.MEDIUM
        return cls.HIGH


class ScoreStatus(str, Enum):
    OK = "ok"
    ERROR = "error"


class AdapterMode(str, Enum):
    """
    Adapter selection policy.

    - AUTO: remote model when credentials exist, else offline rules
    - EXTERNAL: remote model required; falls back with a warning
    - OFFLINE: always the deterministic rules engine
    """

    AUTO = "auto"
    EXTERNAL = "external"
    OFFLINE = "offline"


class TokenStandard(str, Enum):
    ERC20 = "erc20"
    ERC721 = "erc721"
    ERC1155 = "erc1155"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "TokenStandard":
        text = str(getattr(value, "value", value) or "").strip().lower()
        for member in cls:
            if member.value == text:
                return member
        return cls.UNKNOWN


class TransferDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


# ============================================================
# CHAIN DATA INPUTS (supplied by the upstream fetcher)
# ============================================================


@dataclass(frozen=True)
class BlockInfo:
    """Block metadata. Timestamp is unix seconds."""

    number: int
    timestamp: int


@dataclass(frozen=True)
class TransactionInfo:
    """
    Raw transaction fields.

    Numeric fields accept int, decimal string or 0x-hex string.
    """

    hash: str
    from_address: str
    to_address: Optional[str] = None
    value: Optional[NumberLike] = None
    gas_limit: Optional[NumberLike] = None
    gas_price: Optional[NumberLike] = None
    max_fee_per_gas: Optional[NumberLike] = None
    max_priority_fee_per_gas: Optional[NumberLike] = None
    data: Optional[str] = None
    chain_id: Optional[NumberLike] = None
    error: Optional[str] = None
    revert_reason: Optional[str] = None
    confirmations: Optional[int] = None


@dataclass(frozen=True)
class LogEntry:
    address: str
    topics: Tuple[str, ...] = ()
    data: Optional[str] = None


@dataclass(frozen=True)
class ReceiptInfo:
    status: Optional[int] = None
    gas_used: Optional[NumberLike] = None
    cumulative_gas_used: Optional[NumberLike] = None
    effective_gas_price: Optional[NumberLike] = None
    gas_price: Optional[NumberLike] = None
    logs: Tuple[LogEntry, ...] = ()


@dataclass(frozen=True)
class TokenTransferRecord:
    """One token movement observed in the transaction."""

    token_address: Optional[str]
    from_address: Optional[str]
    to_address: Optional[str]
    amount: Optional[NumberLike] = None
    token_type: Optional[str] = None
    token_id: Optional[NumberLike] = None


@dataclass(frozen=True)
class CreatedContract:
    address: str
    bytecode: Optional[str] = None


@dataclass(frozen=True)
class AddressInfo:
    first_seen_at: Optional[str] = None
    labels: Optional[Tuple[str, ...]] = None

    def to_dict(self) -> Dict[str, Any]:
        return _without_none({
            "firstSeenAt": self.first_seen_at,
            "labels": list(self.labels) if self.labels is not None else None,
        })


@dataclass(frozen=True)
class AddressMetadata:
    sender: Optional[AddressInfo] = None
    recipient: Optional[AddressInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        return _without_none({
            "from": self.sender.to_dict() if self.sender else None,
            "to": self.recipient.to_dict() if self.recipient else None,
        })


@dataclass(frozen=True)
class BridgeMetadata:
    bridge_id: Optional[str] = None
    direction: Optional[TransferDirection] = None

    def to_dict(self) -> Dict[str, Any]:
        return _without_none({
            "bridgeId": self.bridge_id,
            "direction": self.direction.value if self.direction else None,
        })


@dataclass(frozen=True)
class TransactionData:
    """Everything the fetcher knows about one transaction."""

    transaction: TransactionInfo
    receipt: ReceiptInfo = field(default_factory=ReceiptInfo)
    transfers: Tuple[TokenTransferRecord, ...] = ()
    created_contracts: Tuple[CreatedContract, ...] = ()
    address_metadata: Optional[AddressMetadata] = None
    bridge_metadata: Optional[BridgeMetadata] = None


@dataclass(frozen=True)
class TokenMetadata:
    address: str
    symbol: Optional[str] = None
    decimals: int = 18


# ============================================================
# CALLDATA DECODING RESULTS
# ============================================================


@dataclass(frozen=True)
class DecodedParam:
    name: str
    type: str
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type, "value": self.value}


@dataclass(frozen=True)
class SwapIntent:
    """Normalized swap intent extracted from a known router call."""

    function_name: str
    path: Tuple[str, ...] = ()
    recipient: Optional[str] = None
    amount_in: Optional[str] = None
    min_amount_out: Optional[str] = None


@dataclass(frozen=True)
class DecodedCall:
    selector: str
    name: str
    signature: str
    params: Tuple[DecodedParam, ...] = ()
    metadata: Optional[SwapIntent] = None


# ============================================================
# FEATURE PAYLOAD
# ============================================================


@dataclass(frozen=True)
class TokenTransfer:
    standard: TokenStandard
    from_address: str
    to_address: str
    token: str
    amount: Optional[str] = None
    token_id: Optional[str] = None
    direction: Optional[TransferDirection] = None

    def to_dict(self) -> Dict[str, Any]:
        return _without_none({
            "standard": self.standard.value,
            "from": self.from_address,
            "to": self.to_address,
            "token": self.token,
            "amount": self.amount,
            "tokenId": self.token_id,
            "direction": self.direction.value if self.direction else None,
        })


@dataclass(frozen=True)
class ContractMetadata:
    age_seconds: Optional[int] = None
    verified: Optional[bool] = None
    bytecode_hash: Optional[str] = None
    implementation: Optional[str] = None
    proxy_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _without_none({
            "ageSeconds": self.age_seconds,
            "verified": self.verified,
            "bytecodeHash": self.bytecode_hash,
            "implementation": self.implementation,
            "proxyType": self.proxy_type,
        })


@dataclass(frozen=True)
class DexRoute:
    """
    Reconstructed swap route.

    price_impact_bps is a heuristic: the shortfall of the output
    observed in transfers against the declared minimum output,
    not the venue's true execution price.
    """

    route_summary: Optional[str] = None
    price_impact_bps: Optional[int] = None
    path: Optional[Tuple[str, ...]] = None
    amount_in: Optional[str] = None
    amount_out: Optional[str] = None
    min_amount_out: Optional[str] = None
    recipient: Optional[str] = None
    swap_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _without_none({
            "routeSummary": self.route_summary,
            "priceImpactBps": self.price_impact_bps,
            "path": list(self.path) if self.path is not None else None,
            "amountIn": self.amount_in,
            "amountOut": self.amount_out,
            "minAmountOut": self.min_amount_out,
            "recipient": self.recipient,
            "swapCount": self.swap_count,
        })


@dataclass(frozen=True)
class FlashLoanSignal:
    """Present only when a flash-loan event was matched."""

    providers: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {"present": True, "providers": list(self.providers)}


@dataclass(frozen=True)
class CapturedLog:
    address: str
    topic0: Optional[str] = None
    topic1: Optional[str] = None
    topic2: Optional[str] = None
    topic3: Optional[str] = None
    data_preview: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _without_none({
            "address": self.address,
            "topic0": self.topic0,
            "topic1": self.topic1,
            "topic2": self.topic2,
            "topic3": self.topic3,
            "dataPreview": self.data_preview,
        })


@dataclass(frozen=True)
class FeaturePayload:
    """
    Canonical, versioned description of one transaction.

    to_dict() is the wire form: camelCase keys, absent optional
    fields omitted, arrays in insertion order.
    """

    chain_id: str
    block_number: str
    block_timestamp: str
    tx_hash: str
    from_address: str
    value: str
    input: str
    function_selector: str
    is_contract_creation: bool
    to_address: Optional[str] = None
    gas: Optional[str] = None
    gas_price: Optional[str] = None
    max_fee_per_gas: Optional[str] = None
    max_priority_fee_per_gas: Optional[str] = None
    receipt_status: Optional[int] = None
    gas_used: Optional[str] = None
    cumulative_gas_used: Optional[str] = None
    effective_gas_price: Optional[str] = None
    fee_paid: Optional[str] = None
    error: Optional[str] = None
    revert_reason: Optional[str] = None
    confirmations: Optional[int] = None
    decoded_params: Tuple[DecodedParam, ...] = ()
    token_transfers: Tuple[TokenTransfer, ...] = ()
    contract_metadata: Optional[ContractMetadata] = None
    address_metadata: Optional[AddressMetadata] = None
    dex_route: Optional[DexRoute] = None
    flash_loan: Optional[FlashLoanSignal] = None
    bridge_metadata: Optional[BridgeMetadata] = None
    logs: Tuple[CapturedLog, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return _without_none({
            "chainId": self.chain_id,
            "blockNumber": self.block_number,
            "blockTimestamp": self.block_timestamp,
            "txHash": self.tx_hash,
            "from": self.from_address,
            "to": self.to_address,
            "value": self.value,
            "gas": self.gas,
            "gasPrice": self.gas_price,
            "maxFeePerGas": self.max_fee_per_gas,
            "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
            "input": self.input,
            "functionSelector": self.function_selector,
            "receiptStatus": self.receipt_status,
            "gasUsed": self.gas_used,
            "cumulativeGasUsed": self.cumulative_gas_used,
            "effectiveGasPrice": self.effective_gas_price,
            "feePaid": self.fee_paid,
            "error": self.error,
            "revertReason": self.revert_reason,
            "confirmations": self.confirmations,
            "decodedParams": [param.to_dict() for param in self.decoded_params],
            "tokenTransfers": [transfer.to_dict() for transfer in self.token_transfers],
            "isContractCreation": self.is_contract_creation,
            "contractMetadata": self.contract_metadata.to_dict() if self.contract_metadata else None,
            "addressMetadata": self.address_metadata.to_dict() if self.address_metadata else None,
            "dexRoute": self.dex_route.to_dict() if self.dex_route else None,
            "flashLoan": self.flash_loan.to_dict() if self.flash_loan else None,
            "bridgeMetadata": self.bridge_metadata.to_dict() if self.bridge_metadata else None,
            "logs": [log.to_dict() for log in self.logs],
        })


# ============================================================
# SCORE REQUEST
# ============================================================


@dataclass(frozen=True)
class ScoreRequestItem:
    tx_hash: str
    payload: FeaturePayload


@dataclass(frozen=True)
class ScoreRequest:
    """
    One scoring request.

    request_hash is derived only from (feature_version, tx_hash,
    payload); see ai_risk_scoring.hashing.
    """

    feature_version: str
    request_hash: str
    transactions: Tuple[ScoreRequestItem, ...]


# ============================================================
# MODEL RESPONSE ENVELOPE
# ============================================================


@dataclass(frozen=True)
class ModelDescriptor:
    id: str
    severity: float
    confidence: float
    why: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _without_none({
            "id": self.id,
            "severity": self.severity,
            "confidence": self.confidence,
            "why": self.why,
        })


@dataclass(frozen=True)
class ModelResult:
    tx_hash: str
    verdict: Verdict
    confidence_overall: float
    descriptors: Tuple[ModelDescriptor, ...] = ()
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tx_hash": self.tx_hash,
            "verdict": self.verdict.value,
            "confidence": {"overall": self.confidence_overall},
            "descriptors": [descriptor.to_dict() for descriptor in self.descriptors],
            "error": self.error,
        }


@dataclass(frozen=True)
class ModelInfo:
    name: str
    version: str


@dataclass(frozen=True)
class ModelResponseEnvelope:
    """
    Adapter output. Scores are untrusted until normalized.

    raw holds the response document exactly as the model sent it,
    when there was one; offline envelopes have none.
    """

    request_hash: str
    model: ModelInfo
    results: Tuple[ModelResult, ...] = ()
    raw: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_hash": self.request_hash,
            "model": {"name": self.model.name, "version": self.model.version},
            "results": [result.to_dict() for result in self.results],
        }


# ============================================================
# NORMALIZED (PERSISTED) SCORE
# ============================================================


@dataclass(frozen=True)
class NormalizedDescriptor:
    id: str
    label: str
    severity_score: float
    severity_bucket: SeverityBucket
    confidence: float
    why: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _without_none({
            "id": self.id,
            "label": self.label,
            "severityScore": self.severity_score,
            "severityBucket": self.severity_bucket.value,
            "confidence": self.confidence,
            "why": self.why,
        })


@dataclass(frozen=True)
class NormalizedRiskScore:
    """
    The persisted unit: one per scoring attempt, keyed by tx hash.

    Immutable after normalization. raw_response keeps the full
    envelope for audit.
    """

    tx_hash: str
    request_hash: str
    feature_version: str
    normalizer_version: str
    model_name: str
    model_version: str
    verdict: Verdict
    confidence_overall: float
    descriptors: Tuple[NormalizedDescriptor, ...]
    raw_response: Dict[str, Any]
    status: ScoreStatus
    requested_at: datetime
    received_at: datetime
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _without_none({
            "txHash": self.tx_hash,
            "requestHash": self.request_hash,
            "featureVersion": self.feature_version,
            "normalizerVersion": self.normalizer_version,
            "modelName": self.model_name,
            "modelVersion": self.model_version,
            "verdict": self.verdict.value,
            "confidenceOverall": self.confidence_overall,
            "descriptors": [descriptor.to_dict() for descriptor in self.descriptors],
            "rawResponse": self.raw_response,
            "status": self.status.value,
            "error": self.error,
            "requestedAt": self.requested_at.isoformat(),
            "receivedAt": self.received_at.isoformat(),
        })
