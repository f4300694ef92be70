"""
Heuristic Extractors.

============================================================
PURPOSE
============================================================
Derive risk signals from raw receipt logs and token transfers:

1. Flash-loan detection (log topic matching)
2. Swap route reconstruction and price impact
3. Fee paid

============================================================
ABSENCE SEMANTICS
============================================================
Every extractor returns None when it has nothing to say. None
is dropped from the feature payload, so adding a detector never
changes the hash of payloads it does not fire on.

============================================================
"""

import logging
from typing import Callable, FrozenSet, Iterable, List, Mapping, Optional, Sequence

from ai_risk_scoring.types import (
    DexRoute,
    FlashLoanSignal,
    LogEntry,
    ReceiptInfo,
    SwapIntent,
    TokenMetadata,
    TokenTransferRecord,
)
from ai_risk_scoring.utils import lower_or_none, shorten_address, to_int


logger = logging.getLogger(__name__)


# ============================================================
# FLASH LOAN DETECTION
# ============================================================


FLASH_LOAN_EVENT_TOPICS: FrozenSet[str] = frozenset({
    "0x0d3648bd0f6ba80134a33ba9275ac585d9d315f0ad8355cddefde31afa28d0e9",  # Aave V2
    "0x668357d96ad1aefac431bd09379a808ce82d4de6fd57d06f2dbce9df0b20b002",  # Aave V3
    "0x3bf4f32020bfe69d137e446fdcb4172018122468b28043650fd752672eb65e29",  # Balancer
    "0x3659d15bd4bb92ab352a8d35bc3119ec6e7e0ab48e4d46201c8a28e02b6a8a86",  # dYdX style
    "0x93ca6fb053a3a5322256122f2ddca24108629fd4895725364e3c65fbec910a97",  # generic variant
    "0x0d7d75e01ab95780d3cd1c8ec0dd6c2ce19e3a20427eec8bf53283b6fb8e95f0",  # simple flash loan
})


def detect_flash_loan(
    logs: Iterable[LogEntry],
    topics: FrozenSet[str] = FLASH_LOAN_EVENT_TOPICS,
) -> Optional[FlashLoanSignal]:
    """
    Match each log's first topic against known flash-loan events.

    Returns:
        FlashLoanSignal with the deduplicated, lower-cased emitter
        addresses in first-seen order, or None when nothing matched
    """
    providers: List[str] = []
    for log in logs:
        if not log.topics:
            continue
        topic0 = (log.topics[0] or "").lower()
        if topic0 not in topics:
            continue
        provider = log.address.lower()
        if provider not in providers:
            providers.append(provider)

    if not providers:
        return None
    return FlashLoanSignal(providers=tuple(providers))


# ============================================================
# FEE
# ============================================================


def compute_fee_paid(
    receipt: ReceiptInfo,
    fallback_gas_price: Optional[object] = None,
) -> Optional[str]:
    """
    gasUsed * effectiveGasPrice as a decimal string.

    Falls back to the receipt gas price, then fallback_gas_price.
    None if gas used or every price is unknown.
    """
    gas_used = to_int(receipt.gas_used)
    if gas_used is None:
        return None

    for candidate in (receipt.effective_gas_price, receipt.gas_price, fallback_gas_price):
        gas_price = to_int(candidate)
        if gas_price is not None:
            return str(gas_used * gas_price)
    return None


# ============================================================
# ROUTE / PRICE IMPACT
# ============================================================


def derive_path_from_transfers(
    transfers: Sequence[TokenTransferRecord],
    sender: Optional[str],
) -> List[str]:
    """
    Best-effort token path from transfers.

    Tokens sent by the sender (outbound) come first, then tokens
    received by the sender that were not also sent.
    """
    sender_lower = (sender or "").lower()
    if not sender_lower:
        return []

    outbound: List[str] = []
    inbound: List[str] = []
    for transfer in transfers:
        token = lower_or_none(transfer.token_address)
        if not token:
            continue
        if (transfer.from_address or "").lower() == sender_lower:
            if token not in outbound:
                outbound.append(token)
        elif (transfer.to_address or "").lower() == sender_lower:
            if token not in inbound:
                inbound.append(token)

    return outbound + [token for token in inbound if token not in outbound]


def sum_transfers(
    transfers: Sequence[TokenTransferRecord],
    predicate: Callable[[TokenTransferRecord], bool],
) -> Optional[int]:
    """Sum matching transfer amounts; None when nothing matched."""
    total = 0
    matched = False
    for transfer in transfers:
        amount = to_int(transfer.amount)
        if amount is None or not predicate(transfer):
            continue
        total += amount
        matched = True
    return total if matched else None


def compute_price_impact_bps(min_amount_out: Optional[int], amount_out: Optional[int]) -> Optional[int]:
    """
    Shortfall of actual output against the declared minimum, in bps.

    This is an approximation built from observed transfers, not the
    venue's execution price. Floor division on ints.
    """
    if min_amount_out is None or amount_out is None or min_amount_out <= 0:
        return None
    shortfall = max(min_amount_out - amount_out, 0)
    return shortfall * 10000 // min_amount_out


def build_route_summary(path: Sequence[str], tokens: Mapping[str, TokenMetadata]) -> Optional[str]:
    if not path:
        return None
    labels = []
    for address in path:
        token = tokens.get(address)
        labels.append(token.symbol if token and token.symbol else shorten_address(address))
    return " -> ".join(labels)


def derive_dex_route(
    sender: Optional[str],
    transfers: Sequence[TokenTransferRecord],
    intent: Optional[SwapIntent],
    tokens: Mapping[str, TokenMetadata],
) -> Optional[DexRoute]:
    """
    Reconstruct swap route insights.

    Uses the decoded swap path when available, otherwise the path
    derived from transfers. Without decoded intent, a route needs
    at least two tokens.
    """
    sender_lower = (sender or "").lower()
    path = list(intent.path) if intent and intent.path else derive_path_from_transfers(transfers, sender_lower)
    path = [address for address in path if address]

    if intent is None and len(path) < 2:
        return None

    first_token = path[0] if path else None
    last_token = path[-1] if path else None
    recipient = (intent.recipient if intent else None) or sender_lower or None

    amount_in: Optional[int] = None
    if intent and intent.amount_in is not None:
        amount_in = to_int(intent.amount_in)
    elif first_token:
        amount_in = sum_transfers(
            transfers,
            lambda transfer: (
                lower_or_none(transfer.token_address) == first_token
                and (transfer.from_address or "").lower() == sender_lower
            ),
        )

    amount_out: Optional[int] = None
    if last_token:
        amount_out = sum_transfers(
            transfers,
            lambda transfer: (
                lower_or_none(transfer.token_address) == last_token
                and (transfer.to_address or "").lower() == recipient
            ),
        )

    min_amount_out = intent.min_amount_out if intent else None
    price_impact_bps = compute_price_impact_bps(to_int(min_amount_out), amount_out)

    route = DexRoute(
        route_summary=build_route_summary(path, tokens),
        price_impact_bps=price_impact_bps,
        path=tuple(path) if path else None,
        amount_in=str(amount_in) if amount_in is not None else (intent.amount_in if intent else None),
        amount_out=str(amount_out) if amount_out is not None else None,
        min_amount_out=min_amount_out,
        recipient=recipient,
        swap_count=len(path) - 1 if path else None,
    )
    logger.debug(f"Derived route {route.route_summary} impact_bps={price_impact_bps}")
    return route
