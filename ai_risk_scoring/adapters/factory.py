"""
Risk Model Adapter Factory.

============================================================
PURPOSE
============================================================
Selects the adapter once, at startup, from configuration.

MODES:
- offline:  always RulesAdapter
- external: RemoteModelAdapter; without credentials falls back
            to RulesAdapter and logs a configuration warning
- auto:     RemoteModelAdapter when credentials exist, otherwise
            RulesAdapter without a warning

============================================================
USAGE
============================================================
```python
config = load_config_from_env()
adapter = select_adapter(config)
```

============================================================
"""

import logging
from typing import Optional

import aiohttp

from ai_risk_scoring.adapters.base import RiskModelAdapter
from ai_risk_scoring.adapters.remote import RemoteModelAdapter
from ai_risk_scoring.adapters.rules import RulesAdapter
from ai_risk_scoring.config import AiScoringConfig
from ai_risk_scoring.types import AdapterMode


logger = logging.getLogger(__name__)


def select_adapter(
    config: AiScoringConfig,
    session: Optional[aiohttp.ClientSession] = None,
) -> RiskModelAdapter:
    """
    Create the adapter for the configured mode.

    Args:
        config: Scoring configuration
        session: Optional shared HTTP session for the remote adapter
    """
    mode = config.adapter_mode

    if mode == AdapterMode.OFFLINE:
        logger.info("AI risk scoring using offline rules adapter")
        return RulesAdapter()

    model = config.model
    if not model.has_credentials or not model.name:
        if mode == AdapterMode.EXTERNAL:
            logger.warning(
                "AI scoring external adapter selected but API key or model name is missing; "
                "falling back to offline rules adapter"
            )
        else:
            logger.debug("No remote model credentials configured; using offline rules adapter")
        return RulesAdapter()

    logger.info(f"AI risk scoring using remote model adapter ({model.name} @ {model.base_url})")
    return RemoteModelAdapter(model, session=session)
