"""
Calldata Decoder.

============================================================
PURPOSE
============================================================
Best-effort decoding of transaction calldata against a fixed
registry of known DEX router swap functions.

A selector miss or malformed arguments yield None. Decoding is
enrichment only and never fails the scoring pipeline.

============================================================
OUTPUT NORMALIZATION
============================================================
- uint values rendered as decimal strings
- addresses and hex values lower-cased
- arrays decoded element-wise

============================================================
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from ai_risk_scoring.types import (
    DecodedCall,
    DecodedParam,
    SwapIntent,
    TransactionInfo,
)
from ai_risk_scoring.utils import to_decimal_string


logger = logging.getLogger(__name__)


SELECTOR_HEX_LENGTH = 10  # "0x" + 4 bytes


# ============================================================
# KNOWN FUNCTION REGISTRY
# ============================================================


@dataclass(frozen=True)
class KnownFunction:
    """
    A router function the decoder understands.

    amount_in_from_value marks payable swaps (ETH in) whose input
    amount is the transaction value rather than an argument.
    """

    name: str
    inputs: Tuple[Tuple[str, str], ...]
    amount_in_from_value: bool = False

    @property
    def types(self) -> Tuple[str, ...]:
        return tuple(abi_type for abi_type, _ in self.inputs)

    @property
    def canonical_signature(self) -> str:
        return f"{self.name}({','.join(self.types)})"

    @property
    def signature(self) -> str:
        args = ",".join(f"{abi_type} {arg}" for abi_type, arg in self.inputs)
        return f"function {self.name}({args})"

    @property
    def selector(self) -> str:
        return Web3.to_hex(Web3.keccak(text=self.canonical_signature)[:4])


_TOKEN_IN_ARGS = (
    ("uint256", "amountIn"),
    ("uint256", "amountOutMin"),
    ("address[]", "path"),
    ("address", "to"),
    ("uint256", "deadline"),
)

_ETH_IN_ARGS = (
    ("uint256", "amountOutMin"),
    ("address[]", "path"),
    ("address", "to"),
    ("uint256", "deadline"),
)

ROUTER_FUNCTIONS: Tuple[KnownFunction, ...] = (
    KnownFunction("swapExactTokensForTokens", _TOKEN_IN_ARGS),
    KnownFunction("swapExactTokensForETH", _TOKEN_IN_ARGS),
    KnownFunction("swapExactETHForTokens", _ETH_IN_ARGS, amount_in_from_value=True),
    KnownFunction("swapExactTokensForTokensSupportingFeeOnTransferTokens", _TOKEN_IN_ARGS),
    KnownFunction("swapExactTokensForETHSupportingFeeOnTransferTokens", _TOKEN_IN_ARGS),
    KnownFunction(
        "swapExactETHForTokensSupportingFeeOnTransferTokens",
        _ETH_IN_ARGS,
        amount_in_from_value=True,
    ),
)


def build_function_registry(
    functions: Tuple[KnownFunction, ...] = ROUTER_FUNCTIONS,
) -> Dict[str, KnownFunction]:
    """Map lower-case 0x selector -> KnownFunction."""
    return {function.selector.lower(): function for function in functions}


# Built once at import; read-only afterwards.
KNOWN_FUNCTIONS: Mapping[str, KnownFunction] = build_function_registry()


# ============================================================
# VALUE NORMALIZATION
# ============================================================


def normalize_decoded_value(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, str):
        return value.lower() if value.startswith(("0x", "0X")) else value
    if isinstance(value, (list, tuple)):
        return [normalize_decoded_value(item) for item in value]
    return value


# ============================================================
# DECODER
# ============================================================


class CalldataDecoder:
    """Decodes calldata against a selector registry."""

    def __init__(self, registry: Optional[Mapping[str, KnownFunction]] = None) -> None:
        self._registry = registry if registry is not None else KNOWN_FUNCTIONS

    def decode(
        self,
        data: Optional[str],
        transaction: Optional[TransactionInfo] = None,
    ) -> Optional[DecodedCall]:
        """
        Decode calldata.

        Args:
            data: 0x-prefixed calldata
            transaction: Source transaction (for payable swaps)

        Returns:
            DecodedCall, or None for empty/short/unknown/malformed data
        """
        if not data or data == "0x" or len(data) < SELECTOR_HEX_LENGTH:
            return None

        selector = data[:SELECTOR_HEX_LENGTH].lower()
        function = self._registry.get(selector)
        if function is None:
            return None

        try:
            raw_args = bytes.fromhex(data[SELECTOR_HEX_LENGTH:])
            decoded = abi_decode(list(function.types), raw_args)
        except (DecodingError, ValueError, TypeError, OverflowError) as e:
            logger.debug(f"Failed to decode {function.name} call ({selector}): {e}")
            return None

        params = tuple(
            DecodedParam(name=arg or f"arg{index}", type=abi_type, value=normalize_decoded_value(value))
            for index, ((abi_type, arg), value) in enumerate(zip(function.inputs, decoded))
        )

        return DecodedCall(
            selector=selector,
            name=function.name,
            signature=function.signature,
            params=params,
            metadata=self._build_swap_intent(function, params, transaction),
        )

    @staticmethod
    def _build_swap_intent(
        function: KnownFunction,
        params: Tuple[DecodedParam, ...],
        transaction: Optional[TransactionInfo],
    ) -> SwapIntent:
        by_name = {param.name: param.value for param in params}

        if function.amount_in_from_value:
            amount_in = to_decimal_string(transaction.value) if transaction else None
        else:
            amount_in = by_name.get("amountIn")

        return SwapIntent(
            function_name=function.name,
            path=tuple(address.lower() for address in by_name.get("path") or ()),
            recipient=(by_name.get("to") or None),
            amount_in=amount_in,
            min_amount_out=by_name.get("amountOutMin"),
        )
