"""
Base Risk Model Adapter - Abstract interface for all risk model variants.

All adapters MUST:
- Accept one ScoreRequest and return one ModelResponseEnvelope
- Return exactly one result per requested transaction
- Raise ModelAdapterError subclasses on failure (never return
  a partial or unvalidated envelope)
"""

import logging
from abc import ABC, abstractmethod

from ai_risk_scoring.types import ModelResponseEnvelope, ScoreRequest


logger = logging.getLogger(__name__)


class RiskModelAdapter(ABC):
    """
    Abstract base class for risk model adapters.

    Variants:
    - RulesAdapter: deterministic offline rules, never raises
    - RemoteModelAdapter: JSON-schema constrained HTTP model call
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this adapter."""
        pass

    @property
    def is_remote(self) -> bool:
        return False

    @abstractmethod
    async def score(self, request: ScoreRequest) -> ModelResponseEnvelope:
        """
        Score the transactions in a request.

        Args:
            request: Score request with precomputed request hash

        Returns:
            Validated response envelope

        Raises:
            ModelAdapterError: If the model could not produce a valid envelope
        """
        pass

    async def close(self) -> None:
        """Release resources. No-op unless the adapter holds any."""
        return None

    async def __aenter__(self) -> "RiskModelAdapter":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"
