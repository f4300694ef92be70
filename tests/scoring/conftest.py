"""
Shared fixtures for AI risk scoring tests.
"""

from typing import Dict, Optional

import pytest
from eth_abi import encode as abi_encode
from sqlalchemy.orm import sessionmaker

from database.engine import Base, create_database_engine, create_session_factory
from ai_risk_scoring.config import AiScoringConfig, ModelSettings
from ai_risk_scoring.types import (
    AdapterMode,
    BlockInfo,
    LogEntry,
    NormalizedRiskScore,
    ReceiptInfo,
    TokenTransferRecord,
    TransactionData,
    TransactionInfo,
)


# =============================================================
# CONSTANTS
# =============================================================

TX_HASH = "0x" + "ab" * 32
SENDER = "0x00000000000000000000000000000000000000aa"
ROUTER = "0x7a250d5630b4cf539739df2c5dacb4c659f2488d"
PAIR = "0x00000000000000000000000000000000000000cc"
TOKEN_A = "0x1111111111111111111111111111111111111111"
TOKEN_B = "0x2222222222222222222222222222222222222222"
AAVE_POOL = "0x87870bca3f3fd6335c3f4ce8392d69350b4fa4e2"

SWAP_EXACT_TOKENS_FOR_TOKENS = "0x38ed1739"
SWAP_EXACT_ETH_FOR_TOKENS = "0x7ff36ab5"
AAVE_V3_FLASH_LOAN_TOPIC = "0x668357d96ad1aefac431bd09379a808ce82d4de6fd57d06f2dbce9df0b20b002"

TOKEN_IN_TYPES = ["uint256", "uint256", "address[]", "address", "uint256"]
ETH_IN_TYPES = ["uint256", "address[]", "address", "uint256"]


# =============================================================
# BUILDERS
# =============================================================

def swap_calldata(
    amount_in: int = 1000,
    min_out: int = 1000,
    path=(TOKEN_A, TOKEN_B),
    recipient: str = SENDER,
    deadline: int = 1_900_000_000,
) -> str:
    args = abi_encode(TOKEN_IN_TYPES, [amount_in, min_out, list(path), recipient, deadline])
    return SWAP_EXACT_TOKENS_FOR_TOKENS + args.hex()


def eth_swap_calldata(min_out: int = 500, path=(TOKEN_A, TOKEN_B), recipient: str = SENDER) -> str:
    args = abi_encode(ETH_IN_TYPES, [min_out, list(path), recipient, 1_900_000_000])
    return SWAP_EXACT_ETH_FOR_TOKENS + args.hex()


def make_tx_data(
    data: Optional[str] = None,
    to_address: Optional[str] = ROUTER,
    transfers=(),
    logs=(),
    tx_hash: str = TX_HASH,
    **tx_fields,
) -> TransactionData:
    return TransactionData(
        transaction=TransactionInfo(
            hash=tx_hash,
            from_address=tx_fields.pop("from_address", SENDER),
            to_address=to_address,
            value=tx_fields.pop("value", 0),
            gas_limit=tx_fields.pop("gas_limit", 250000),
            gas_price=tx_fields.pop("gas_price", "0x3b9aca00"),
            data=data,
            chain_id=tx_fields.pop("chain_id", 324),
            **tx_fields,
        ),
        receipt=ReceiptInfo(
            status=1,
            gas_used=150000,
            effective_gas_price="1000000000",
            logs=tuple(logs),
        ),
        transfers=tuple(transfers),
    )


def swap_transfers(amount_in: int = 1000, amount_out: int = 900):
    return (
        TokenTransferRecord(
            token_address=TOKEN_A,
            from_address=SENDER,
            to_address=PAIR,
            amount=amount_in,
            token_type="erc20",
        ),
        TokenTransferRecord(
            token_address=TOKEN_B,
            from_address=PAIR,
            to_address=SENDER,
            amount=str(amount_out),
            token_type="erc20",
        ),
    )


def flash_loan_log() -> LogEntry:
    return LogEntry(
        address=AAVE_POOL.upper().replace("0X", "0x"),
        topics=(AAVE_V3_FLASH_LOAN_TOPIC.upper().replace("0X", "0x"),),
        data="0x",
    )


class InMemoryScoreStore:
    """Store double keyed by tx hash."""

    def __init__(self) -> None:
        self.scores: Dict[str, NormalizedRiskScore] = {}
        self.upserts = 0

    async def upsert_score(self, score: NormalizedRiskScore) -> None:
        self.upserts += 1
        self.scores[score.tx_hash] = score

    async def get_score(self, tx_hash: str) -> Optional[NormalizedRiskScore]:
        return self.scores.get(tx_hash)


# =============================================================
# FIXTURES
# =============================================================

@pytest.fixture
def block() -> BlockInfo:
    return BlockInfo(number=123456, timestamp=1_700_000_000)


@pytest.fixture
def offline_config() -> AiScoringConfig:
    return AiScoringConfig(enabled=True, adapter_mode=AdapterMode.OFFLINE)


@pytest.fixture
def remote_settings() -> ModelSettings:
    return ModelSettings(
        base_url="https://models.example.test/v1",
        name="risk-model",
        api_key="sk-test",
        organization="org-test",
        timeout_seconds=5.0,
    )


@pytest.fixture
def store() -> InMemoryScoreStore:
    return InMemoryScoreStore()


@pytest.fixture
def session_factory() -> sessionmaker:
    from ai_risk_scoring import models  # noqa: F401

    engine = create_database_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    yield create_session_factory(engine)
    engine.dispose()
