"""
Feature Payload construction.

============================================================
PURPOSE
============================================================
Turns raw chain data for one transaction into the canonical,
versioned FeaturePayload consumed by risk model adapters.

============================================================
FLOW
============================================================
FeatureExtractor.extract(block, tx_data)
    1. Decode calldata (CalldataDecoder)
    2. Map token transfers, tag direction relative to sender
    3. Resolve token metadata concurrently (failures -> unknown)
    4. Derive route/price impact, flash loan, fee
    5. build_feature_payload() assembles the result

build_feature_payload() is pure: no I/O, no failures on missing
optional data.

============================================================
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from web3 import Web3

from ai_risk_scoring.calldata import CalldataDecoder
from ai_risk_scoring.config import AiScoringConfig
from ai_risk_scoring.heuristics import (
    FLASH_LOAN_EVENT_TOPICS,
    compute_fee_paid,
    derive_dex_route,
    detect_flash_loan,
)
from ai_risk_scoring.types import (
    BlockInfo,
    CapturedLog,
    ContractMetadata,
    DecodedCall,
    DexRoute,
    FeaturePayload,
    FlashLoanSignal,
    LogEntry,
    TokenMetadata,
    TokenStandard,
    TokenTransfer,
    TransactionData,
    TransferDirection,
)
from ai_risk_scoring.utils import lower_or_none, to_decimal_string, to_hex_quantity


logger = logging.getLogger(__name__)


MAX_CAPTURED_LOGS = 12
LOG_DATA_PREVIEW_LENGTH = 66  # "0x" + 32 bytes
DEFAULT_TOKEN_DECIMALS = 18


# ============================================================
# TOKEN METADATA
# ============================================================


class TokenMetadataProvider(Protocol):
    """
    Read access to token metadata.

    Returning None is a valid answer (unknown token).
    """

    async def get_token(self, address: str) -> Optional[TokenMetadata]:
        ...


class StaticTokenMetadataProvider:
    """In-memory provider backed by a mapping of well-known tokens."""

    def __init__(self, tokens: Optional[Iterable[TokenMetadata]] = None) -> None:
        self._tokens: Dict[str, TokenMetadata] = {
            token.address.lower(): token for token in (tokens or ())
        }

    async def get_token(self, address: str) -> Optional[TokenMetadata]:
        return self._tokens.get(address.lower())


# ============================================================
# PURE ASSEMBLY
# ============================================================


def format_block_timestamp(timestamp: int) -> str:
    """Unix seconds -> ISO-8601 UTC with millisecond precision."""
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize_chain_id(chain_id: object) -> str:
    """Render chain id as 0x-hex; unknown or unparsable -> 0x0."""
    return to_hex_quantity(chain_id) or "0x0"


def function_selector(data: str) -> str:
    """First 4 bytes of calldata; shorter calldata is returned whole."""
    return data[:10] if data else "0x"


def capture_logs(logs: Sequence[LogEntry], limit: int = MAX_CAPTURED_LOGS) -> Tuple[CapturedLog, ...]:
    captured = []
    for log in logs[:limit]:
        topics = [topic.lower() if topic else None for topic in log.topics[:4]]
        topics += [None] * (4 - len(topics))
        captured.append(CapturedLog(
            address=log.address.lower(),
            topic0=topics[0],
            topic1=topics[1],
            topic2=topics[2],
            topic3=topics[3],
            data_preview=log.data.lower()[:LOG_DATA_PREVIEW_LENGTH] if log.data is not None else None,
        ))
    return tuple(captured)


def map_token_transfers(tx_data: TransactionData) -> Tuple[TokenTransfer, ...]:
    sender = tx_data.transaction.from_address.lower()
    transfers = []
    for record in tx_data.transfers:
        to_address = (record.to_address or "").lower()
        transfers.append(TokenTransfer(
            standard=TokenStandard.parse(record.token_type),
            from_address=(record.from_address or "").lower(),
            to_address=to_address,
            token=(record.token_address or "").lower(),
            amount=to_decimal_string(record.amount),
            token_id=to_decimal_string(record.token_id),
            direction=TransferDirection.INBOUND if to_address == sender else TransferDirection.OUTBOUND,
        ))
    return tuple(transfers)


def build_contract_metadata(tx_data: TransactionData) -> Optional[ContractMetadata]:
    """Metadata for a freshly created contract; None for calls."""
    if tx_data.transaction.to_address or not tx_data.created_contracts:
        return None

    bytecode = tx_data.created_contracts[0].bytecode
    bytecode_hash = None
    if bytecode and bytecode != "0x":
        try:
            bytecode_hash = Web3.to_hex(Web3.keccak(hexstr=bytecode)).lower()
        except ValueError:
            logger.debug(f"Unparsable bytecode for contract {tx_data.created_contracts[0].address}")

    return ContractMetadata(age_seconds=0, verified=False, bytecode_hash=bytecode_hash)


def build_feature_payload(
    block: BlockInfo,
    tx_data: TransactionData,
    decoded_call: Optional[DecodedCall] = None,
    dex_route: Optional[DexRoute] = None,
    flash_loan: Optional[FlashLoanSignal] = None,
    fee_paid: Optional[str] = None,
) -> FeaturePayload:
    """
    Assemble a FeaturePayload from raw data and derived signals.

    Identifiers and hex data are lower-cased, logs capped at
    MAX_CAPTURED_LOGS. Optional inputs that are missing stay None
    and are omitted from the wire form.
    """
    tx = tx_data.transaction
    receipt = tx_data.receipt
    data = (tx.data or "0x").lower()

    return FeaturePayload(
        chain_id=normalize_chain_id(tx.chain_id),
        block_number=to_hex_quantity(block.number) or "0x0",
        block_timestamp=format_block_timestamp(block.timestamp),
        tx_hash=tx.hash.lower(),
        from_address=tx.from_address.lower(),
        to_address=lower_or_none(tx.to_address),
        value=to_decimal_string(tx.value) or "0",
        gas=to_decimal_string(tx.gas_limit),
        gas_price=to_decimal_string(tx.gas_price),
        max_fee_per_gas=to_decimal_string(tx.max_fee_per_gas),
        max_priority_fee_per_gas=to_decimal_string(tx.max_priority_fee_per_gas),
        input=data,
        function_selector=function_selector(data),
        receipt_status=receipt.status,
        gas_used=to_decimal_string(receipt.gas_used),
        cumulative_gas_used=to_decimal_string(receipt.cumulative_gas_used),
        effective_gas_price=to_decimal_string(receipt.effective_gas_price),
        fee_paid=fee_paid,
        error=tx.error,
        revert_reason=tx.revert_reason,
        confirmations=tx.confirmations,
        decoded_params=decoded_call.params if decoded_call else (),
        token_transfers=map_token_transfers(tx_data),
        is_contract_creation=not tx.to_address,
        contract_metadata=build_contract_metadata(tx_data),
        address_metadata=tx_data.address_metadata,
        dex_route=dex_route,
        flash_loan=flash_loan,
        bridge_metadata=tx_data.bridge_metadata,
        logs=capture_logs(receipt.logs),
    )


# ============================================================
# EXTRACTOR
# ============================================================


class FeatureExtractor:
    """
    Builds feature payloads, resolving token metadata on the way.

    Read-only lookup tables (decoder registry, flash-loan topics)
    are created once and shared by reference.
    """

    def __init__(
        self,
        config: AiScoringConfig,
        token_metadata: Optional[TokenMetadataProvider] = None,
        decoder: Optional[CalldataDecoder] = None,
        flash_loan_topics: frozenset = FLASH_LOAN_EVENT_TOPICS,
    ) -> None:
        self._config = config
        self._token_metadata = token_metadata
        self._decoder = decoder or CalldataDecoder()
        self._flash_loan_topics = flash_loan_topics

    async def extract(self, block: BlockInfo, tx_data: TransactionData) -> FeaturePayload:
        tx = tx_data.transaction
        decoded_call = self._decoder.decode(tx.data, tx)
        intent = decoded_call.metadata if decoded_call else None

        addresses: List[str] = []
        for record in tx_data.transfers:
            token = lower_or_none(record.token_address)
            if token and token not in addresses:
                addresses.append(token)
        for token in (intent.path if intent else ()):
            if token not in addresses:
                addresses.append(token)

        tokens = await self.resolve_tokens(addresses)

        return build_feature_payload(
            block,
            tx_data,
            decoded_call=decoded_call,
            dex_route=derive_dex_route(tx.from_address, tx_data.transfers, intent, tokens),
            flash_loan=detect_flash_loan(tx_data.receipt.logs, self._flash_loan_topics),
            fee_paid=compute_fee_paid(tx_data.receipt, tx.gas_price),
        )

    async def resolve_tokens(self, addresses: Sequence[str]) -> Mapping[str, TokenMetadata]:
        """
        Resolve metadata for each unique address.

        Lookups run concurrently; a failed or empty lookup yields
        a metadata entry with an unknown symbol.
        """
        resolved: Dict[str, TokenMetadata] = {}
        pending: List[str] = []

        for address in dict.fromkeys(address.lower() for address in addresses if address):
            if address == self._config.base_token_address:
                resolved[address] = TokenMetadata(
                    address=address,
                    symbol=self._config.base_token_symbol,
                    decimals=self._config.base_token_decimals,
                )
            elif self._token_metadata is None:
                resolved[address] = TokenMetadata(address=address, decimals=DEFAULT_TOKEN_DECIMALS)
            else:
                pending.append(address)

        if pending:
            results = await asyncio.gather(
                *(self._token_metadata.get_token(address) for address in pending),
                return_exceptions=True,
            )
            for address, result in zip(pending, results):
                if isinstance(result, TokenMetadata):
                    resolved[address] = result
                    continue
                if isinstance(result, BaseException):
                    if isinstance(result, asyncio.CancelledError):
                        raise result
                    logger.debug(f"Token metadata lookup failed for {address}: {result}")
                resolved[address] = TokenMetadata(address=address, decimals=DEFAULT_TOKEN_DECIMALS)

        return resolved
