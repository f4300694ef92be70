"""
FastAPI Router for AI Risk Score Endpoints.

Provides read access to stored scores:
- GET /transactions/{transaction_hash}/ai-risk-score
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database.engine import get_session_factory
from ai_risk_scoring.repository import TxAiRiskScoreRepository, row_to_score
from ai_risk_scoring.schemas import AiRiskScoreResponse
from ai_risk_scoring.utils import normalize_tx_hash

router = APIRouter(prefix="/transactions", tags=["AI Risk Score"])


# =============================================================
# HELPER: Database dependency
# =============================================================

def get_db():
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def get_repository(db: Session = Depends(get_db)) -> TxAiRiskScoreRepository:
    return TxAiRiskScoreRepository(db)


# =============================================================
# AI RISK SCORE ENDPOINTS
# =============================================================

@router.get(
    "/{transaction_hash}/ai-risk-score",
    response_model=AiRiskScoreResponse,
    response_model_by_alias=True,
)
def get_ai_risk_score(
    transaction_hash: str,
    repository: TxAiRiskScoreRepository = Depends(get_repository),
):
    """
    Get the stored AI risk score for a transaction.

    Returns 400 for a malformed hash and 404 when the transaction
    has not been scored.
    """
    tx_hash = normalize_tx_hash(transaction_hash)
    if tx_hash is None:
        raise HTTPException(status_code=400, detail=f"Invalid transaction hash: {transaction_hash}")

    row = repository.get_by_tx_hash(tx_hash)
    if row is None:
        raise HTTPException(status_code=404, detail=f"AI risk score for {tx_hash} not found")

    return AiRiskScoreResponse.from_score(row_to_score(row))
