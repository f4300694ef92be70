"""
Descriptor catalog.

Known risk descriptor ids and their human labels. Ids are
domain-prefixed ("dex.", "flash.", ...). Models may mint new ids;
unknown ids are labelled with the id itself.
"""

from typing import Dict


HIGH_PRICE_IMPACT = "dex.high_price_impact"
FLASH_LOAN_DETECTED = "flash.loan_detected"
BRIDGE_UNKNOWN_DESTINATION = "bridge.unknown_destination"
UNVERIFIED_CONTRACT_CREATION = "contract.unverified_creation"
ADDRESS_WATCHLIST_HIT = "address.watchlist_hit"
SANDWICH_PATTERN = "protocol.sandwich_pattern"
FLASH_LOAN_ATTACK = "protocol.flash_loan_attack"
BRIDGE_ANOMALY = "protocol.bridge_anomaly"
UNUSUAL_VALUE_TRANSFER = "generic.unusual_value_transfer"


DESCRIPTOR_LABELS: Dict[str, str] = {
    HIGH_PRICE_IMPACT: "High DEX price impact",
    FLASH_LOAN_DETECTED: "Flash-loan pattern detected",
    BRIDGE_UNKNOWN_DESTINATION: "Unknown bridge destination",
    UNVERIFIED_CONTRACT_CREATION: "Unverified contract creation",
    ADDRESS_WATCHLIST_HIT: "Address on watchlist",
    SANDWICH_PATTERN: "Sandwich attack pattern",
    FLASH_LOAN_ATTACK: "Flash-loan attack pattern",
    BRIDGE_ANOMALY: "Anomalous bridge activity",
    UNUSUAL_VALUE_TRANSFER: "Unusual value transfer",
}


def descriptor_label(descriptor_id: str) -> str:
    return DESCRIPTOR_LABELS.get(descriptor_id, descriptor_id)
