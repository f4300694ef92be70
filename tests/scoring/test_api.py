"""
Tests for the AI risk score read endpoint.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from ai_risk_scoring.repository import TxAiRiskScoreRepository
from ai_risk_scoring.router import get_db, router
from database.engine import transaction_scope

from conftest import TX_HASH
from test_repository import make_score


@pytest.fixture
def client(session_factory):
    app = FastAPI()
    app.include_router(router)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def stored_score(session_factory):
    score = make_score()
    with transaction_scope(session_factory) as session:
        TxAiRiskScoreRepository(session).upsert_score(score)
    return score


# =============================================================
# TEST: GET /transactions/{hash}/ai-risk-score
# =============================================================

class TestGetAiRiskScore:

    def test_invalid_hash(self, client):
        response = client.get("/transactions/0x1234/ai-risk-score")
        assert response.status_code == 400

    def test_non_hex_hash(self, client):
        response = client.get(f"/transactions/0x{'zz' * 32}/ai-risk-score")
        assert response.status_code == 400

    def test_not_scored(self, client):
        response = client.get(f"/transactions/0x{'00' * 32}/ai-risk-score")
        assert response.status_code == 404

    def test_stored_score(self, client, stored_score):
        response = client.get(f"/transactions/{TX_HASH}/ai-risk-score")

        assert response.status_code == 200
        body = response.json()
        assert body["txHash"] == TX_HASH
        assert body["requestHash"] == stored_score.request_hash
        assert body["featureVersion"] == "tx-risk-features/poc-v1"
        assert body["normalizerVersion"] == "tx-risk-normalizer/poc-v1"
        assert body["modelName"] == "rules-offline"
        assert body["modelVersion"] == "poc-v1"
        assert body["verdict"] == "suspicious"
        assert body["confidenceOverall"] == 0.6
        assert body["status"] == "ok"
        assert body["error"] is None
        assert "requestedAt" in body and "receivedAt" in body

        first, second = body["descriptors"]
        assert first == {
            "id": "dex.high_price_impact",
            "label": "High DEX price impact",
            "severity": "medium",
            "severityScore": 0.5,
            "confidence": 0.5,
            "why": "Price impact 10.00%",
        }
        assert second["why"] is None

    def test_hash_without_prefix_and_upper_case(self, client, stored_score):
        response = client.get(f"/transactions/{TX_HASH[2:].upper()}/ai-risk-score")

        assert response.status_code == 200
        assert response.json()["txHash"] == TX_HASH
