"""
AI Risk Scoring - Repository.

============================================================
PURPOSE
============================================================
Repository pattern implementation for AI risk score persistence.

Provides clean interface for:
- Idempotent upsert keyed by transaction hash
- Lookup by transaction hash

============================================================
UPSERT
============================================================
PostgreSQL and SQLite use a native
    INSERT ... ON CONFLICT (tx_hash) DO UPDATE
so concurrent retries converge on the last write without
duplicate rows. Other dialects fall back to session.merge().

============================================================
"""

import asyncio
import logging
from datetime import timezone
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, sessionmaker

from database.engine import get_db_session, transaction_scope

from .models import TxAiRiskScore
from .types import (
    NormalizedDescriptor,
    NormalizedRiskScore,
    ScoreStatus,
    SeverityBucket,
    Verdict,
)


logger = logging.getLogger(__name__)


# --------------------------------------------------------
# MAPPING
# --------------------------------------------------------


def score_to_row(score: NormalizedRiskScore) -> Dict[str, Any]:
    """Column values for a normalized score."""
    return {
        "tx_hash": score.tx_hash.lower(),
        "request_hash": score.request_hash,
        "feature_version": score.feature_version,
        "normalizer_version": score.normalizer_version,
        "model_name": score.model_name,
        "model_version": score.model_version,
        "verdict": score.verdict.value,
        "confidence_overall": score.confidence_overall,
        "descriptors": [descriptor.to_dict() for descriptor in score.descriptors],
        "raw_response": score.raw_response,
        "status": score.status.value,
        "error": score.error,
        "requested_at": score.requested_at,
        "received_at": score.received_at,
    }


def row_to_score(row: TxAiRiskScore) -> NormalizedRiskScore:
    """Rebuild a NormalizedRiskScore from a stored row."""
    descriptors = tuple(
        NormalizedDescriptor(
            id=item["id"],
            label=item.get("label", item["id"]),
            severity_score=float(item.get("severityScore", 0.0)),
            severity_bucket=SeverityBucket(item.get("severityBucket", SeverityBucket.LOW.value)),
            confidence=float(item.get("confidence", 0.0)),
            why=item.get("why"),
        )
        for item in (row.descriptors or [])
    )

    def _aware(value):
        # SQLite drops tzinfo; stored values are UTC
        return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value

    return NormalizedRiskScore(
        tx_hash=row.tx_hash,
        request_hash=row.request_hash,
        feature_version=row.feature_version,
        normalizer_version=row.normalizer_version,
        model_name=row.model_name,
        model_version=row.model_version,
        verdict=Verdict(row.verdict),
        confidence_overall=row.confidence_overall,
        descriptors=descriptors,
        raw_response=row.raw_response or {},
        status=ScoreStatus(row.status),
        error=row.error,
        requested_at=_aware(row.requested_at),
        received_at=_aware(row.received_at),
    )


class TxAiRiskScoreRepository:
    """
    Repository for AI risk score persistence operations.

    ============================================================
    METHODS
    ============================================================
    - upsert_score: Insert or overwrite the score for a tx hash
    - get_by_tx_hash: Fetch the stored row

    ============================================================
    """

    def __init__(self, session: Session):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy session (caller owns the transaction)
        """
        self._session = session

    def upsert_score(self, score: NormalizedRiskScore) -> None:
        values = score_to_row(score)
        dialect = self._session.get_bind().dialect.name

        if dialect == "postgresql":
            insert = postgresql.insert
        elif dialect == "sqlite":
            insert = sqlite.insert
        else:
            self._session.merge(TxAiRiskScore(**values))
            self._session.flush()
            return

        stmt = insert(TxAiRiskScore).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[TxAiRiskScore.tx_hash],
            set_={key: stmt.excluded[key] for key in values if key != "tx_hash"},
        )
        self._session.execute(stmt)

    def get_by_tx_hash(self, tx_hash: str) -> Optional[TxAiRiskScore]:
        stmt = select(TxAiRiskScore).where(TxAiRiskScore.tx_hash == tx_hash.lower())
        return self._session.execute(stmt).scalar_one_or_none()


class SqlRiskScoreStore:
    """
    Async store used by the scoring service.

    Each call runs in its own transaction on a worker thread so
    the event loop is never blocked by the database driver.
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None) -> None:
        self._session_factory = session_factory

    def _upsert(self, score: NormalizedRiskScore) -> None:
        with transaction_scope(self._session_factory) as session:
            TxAiRiskScoreRepository(session).upsert_score(score)
        logger.debug(f"Upserted AI risk score row for {score.tx_hash}")

    def _get(self, tx_hash: str) -> Optional[NormalizedRiskScore]:
        with get_db_session(self._session_factory) as session:
            row = TxAiRiskScoreRepository(session).get_by_tx_hash(tx_hash)
            return row_to_score(row) if row is not None else None

    async def upsert_score(self, score: NormalizedRiskScore) -> None:
        await asyncio.to_thread(self._upsert, score)

    async def get_score(self, tx_hash: str) -> Optional[NormalizedRiskScore]:
        return await asyncio.to_thread(self._get, tx_hash)
