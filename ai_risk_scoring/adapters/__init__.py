"""
Risk Model Adapters.

Two variants behind one capability, score(request) -> envelope:
- RemoteModelAdapter: hosted model over HTTP
- RulesAdapter: deterministic offline fallback
"""

from ai_risk_scoring.adapters.base import RiskModelAdapter
from ai_risk_scoring.adapters.factory import select_adapter
from ai_risk_scoring.adapters.remote import (
    REMOTE_ADAPTER_NAME,
    RemoteModelAdapter,
    extract_json_payload,
)
from ai_risk_scoring.adapters.rules import (
    RULES_ADAPTER_NAME,
    RULES_ADAPTER_VERSION,
    RulesAdapter,
)


__all__ = [
    "RiskModelAdapter",
    "RemoteModelAdapter",
    "RulesAdapter",
    "select_adapter",
    "extract_json_payload",
    "REMOTE_ADAPTER_NAME",
    "RULES_ADAPTER_NAME",
    "RULES_ADAPTER_VERSION",
]
