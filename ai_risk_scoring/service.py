"""
AI Risk Scoring Service - Orchestrator.

============================================================
PURPOSE
============================================================
Scores one observed transaction end to end:

    FeatureExtractor.extract()
        -> compute_request_hash()
        -> adapter.score()            (remote or offline)
        -> normalize_model_response()
        -> store.upsert_score()

============================================================
FAILURE CONTAINMENT
============================================================
score_transaction() never raises (cancellation excepted). Any
failure is logged with the transaction hash and the transaction
is skipped: nothing is written for it.

A response must answer the request it was given: same request
hash, exactly one result, same tx hash. Anything else is a
ResponseValidationError and is contained like any other failure.

At most one scoring attempt per transaction hash is in flight
from this service at any time; duplicates are dropped.

============================================================
"""

import logging
from dataclasses import replace
from typing import Optional, Protocol, Set

import aiohttp

from ai_risk_scoring.adapters import RiskModelAdapter, select_adapter
from ai_risk_scoring.config import AiScoringConfig
from ai_risk_scoring.exceptions import ResponseValidationError
from ai_risk_scoring.features import FeatureExtractor, TokenMetadataProvider
from ai_risk_scoring.hashing import compute_request_hash
from ai_risk_scoring.normalize import normalize_model_response
from ai_risk_scoring.types import (
    BlockInfo,
    ModelResponseEnvelope,
    NormalizedRiskScore,
    ScoreRequest,
    ScoreRequestItem,
    TransactionData,
)


logger = logging.getLogger(__name__)


class RiskScoreStore(Protocol):
    """Persistence collaborator keyed by transaction hash."""

    async def upsert_score(self, score: NormalizedRiskScore) -> None:
        ...

    async def get_score(self, tx_hash: str) -> Optional[NormalizedRiskScore]:
        ...


class AiRiskScoringService:
    """
    Per-transaction scoring orchestrator.

    The adapter is chosen once by the caller (see
    create_scoring_service) and passed in explicitly.
    """

    def __init__(
        self,
        config: AiScoringConfig,
        adapter: RiskModelAdapter,
        store: RiskScoreStore,
        extractor: FeatureExtractor,
    ) -> None:
        self._config = config
        self._adapter = adapter
        self._store = store
        self._extractor = extractor
        self._in_flight: Set[str] = set()

    @property
    def adapter(self) -> RiskModelAdapter:
        return self._adapter

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    async def score_transaction(
        self,
        block: BlockInfo,
        tx_data: TransactionData,
    ) -> Optional[NormalizedRiskScore]:
        """
        Score and persist one transaction.

        Returns:
            The stored score, or None when scoring is disabled, the
            hash is already being scored, the model returned no
            result, or the attempt failed
        """
        if not self._config.enabled:
            return None

        tx_hash = tx_data.transaction.hash.lower()
        if tx_hash in self._in_flight:
            logger.warning(f"AI risk scoring already in progress for {tx_hash}, skipping")
            return None

        self._in_flight.add(tx_hash)
        try:
            return await self._score(block, tx_data)
        except Exception as e:
            logger.error(
                f"AI risk scoring failed for {tx_hash} "
                f"[adapter={self._adapter.name}]: {e}"
            )
            return None
        finally:
            self._in_flight.discard(tx_hash)

    async def _score(
        self,
        block: BlockInfo,
        tx_data: TransactionData,
    ) -> Optional[NormalizedRiskScore]:
        feature_version = self._config.feature_version
        payload = await self._extractor.extract(block, tx_data)
        request_hash = compute_request_hash(feature_version, payload.tx_hash, payload)

        envelope = await self._adapter.score(ScoreRequest(
            feature_version=feature_version,
            request_hash=request_hash,
            transactions=(ScoreRequestItem(tx_hash=payload.tx_hash, payload=payload),),
        ))

        if not envelope.results:
            logger.warning(f"Model response did not return results for {payload.tx_hash}")
            return None
        self._check_envelope(envelope, request_hash, payload.tx_hash)

        [score] = normalize_model_response(envelope, feature_version)
        # Stored identity always comes from the request, never the model
        score = replace(score, tx_hash=payload.tx_hash, request_hash=request_hash)
        await self._store.upsert_score(score)
        logger.info(
            f"AI risk score stored for {score.tx_hash}: verdict={score.verdict.value} "
            f"confidence={score.confidence_overall:.2f} model={score.model_name}"
        )
        return score

    def _check_envelope(
        self,
        envelope: ModelResponseEnvelope,
        request_hash: str,
        tx_hash: str,
    ) -> None:
        """
        Match the response against the request it answers.

        Raises:
            ResponseValidationError: on a foreign request hash, a
                result count other than one, or a foreign tx hash
        """
        if envelope.request_hash != request_hash:
            raise ResponseValidationError(
                f"Model response request_hash {envelope.request_hash!r} "
                f"does not match request {request_hash}",
                field_path="request_hash",
                adapter_name=self._adapter.name,
            )
        if len(envelope.results) != 1:
            raise ResponseValidationError(
                f"Model returned {len(envelope.results)} results for one transaction",
                field_path="results",
                adapter_name=self._adapter.name,
            )
        result_hash = envelope.results[0].tx_hash.lower()
        if result_hash != tx_hash:
            raise ResponseValidationError(
                f"Model result for {result_hash} does not match requested {tx_hash}",
                field_path="results[0].tx_hash",
                adapter_name=self._adapter.name,
            )

    async def get_score(self, tx_hash: str) -> Optional[NormalizedRiskScore]:
        return await self._store.get_score(tx_hash.lower())

    async def close(self) -> None:
        await self._adapter.close()

    async def __aenter__(self) -> "AiRiskScoringService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


def create_scoring_service(
    config: AiScoringConfig,
    store: RiskScoreStore,
    token_metadata: Optional[TokenMetadataProvider] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> AiRiskScoringService:
    """
    Compose the scoring service from configuration.

    Args:
        config: Scoring configuration
        store: Persistence collaborator
        token_metadata: Optional token metadata provider
        session: Optional shared HTTP session for the remote adapter
    """
    if not config.enabled:
        logger.info("AI risk scoring disabled; transactions will not be scored")

    return AiRiskScoringService(
        config=config,
        adapter=select_adapter(config, session=session),
        store=store,
        extractor=FeatureExtractor(config, token_metadata=token_metadata),
    )
