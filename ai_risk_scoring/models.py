"""
AI Risk Scoring - Persistence Model.

============================================================
PURPOSE
============================================================
ORM entity for normalized AI risk scores.

One row per transaction hash. A re-score overwrites the row;
no score history is kept.

============================================================
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    DateTime,
    Float,
    Index,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from database.engine import Base


# ============================================================
# TX AI RISK SCORE MODEL
# ============================================================


class TxAiRiskScore(Base):
    """
    Stored AI risk score for one transaction.

    ============================================================
    WHAT IT STORES
    ============================================================
    - Verdict and overall confidence
    - Normalized descriptors (JSON)
    - Full model response envelope for audit (JSON)
    - Feature / normalizer / model versions

    ============================================================
    """

    __tablename__ = "tx_ai_risk_scores"

    tx_hash: Mapped[str] = mapped_column(
        String(66),
        primary_key=True,
        comment="Lower-case 0x transaction hash",
    )

    request_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="SHA-256 of feature version, tx hash and payload",
    )

    # Versioning
    feature_version: Mapped[str] = mapped_column(String(64), nullable=False)
    normalizer_version: Mapped[str] = mapped_column(String(64), nullable=False)
    model_name: Mapped[str] = mapped_column(String(128), nullable=False)
    model_version: Mapped[str] = mapped_column(String(64), nullable=False)

    # Outcome
    verdict: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="normal | suspicious | security_concern",
    )

    confidence_overall: Mapped[float] = mapped_column(Float, nullable=False)

    descriptors: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    raw_response: Mapped[Dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="ok | error",
    )

    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_tx_ai_risk_scores_request_hash", "request_hash", unique=True),
    )

    def __repr__(self) -> str:
        return (
            f"<TxAiRiskScore(tx_hash={self.tx_hash}, verdict={self.verdict}, "
            f"status={self.status})>"
        )
