"""
Tests for risk model adapters and adapter selection.
"""

import asyncio
import json
import logging
from dataclasses import replace
from typing import Any, List, Optional

import pytest

from ai_risk_scoring.adapters import (
    RemoteModelAdapter,
    RulesAdapter,
    select_adapter,
)
from ai_risk_scoring.adapters.remote import extract_json_payload
from ai_risk_scoring.config import AiScoringConfig, ModelSettings
from ai_risk_scoring.exceptions import (
    ModelRequestError,
    ModelResponseFormatError,
    ModelTimeoutError,
    ResponseValidationError,
)
from ai_risk_scoring.types import (
    AdapterMode,
    DexRoute,
    FeaturePayload,
    FlashLoanSignal,
    ScoreRequest,
    ScoreRequestItem,
    Verdict,
)
from ai_risk_scoring.validation import RESPONSE_SCHEMA_NAME, validate_model_response

from conftest import AAVE_POOL, SENDER, TX_HASH


REQUEST_HASH = "c" * 64


def make_payload(impact_bps: Optional[int] = None, flash_loan: bool = False) -> FeaturePayload:
    return FeaturePayload(
        chain_id="0x144",
        block_number="0x1e240",
        block_timestamp="2023-11-14T22:13:20.000Z",
        tx_hash=TX_HASH,
        from_address=SENDER,
        value="0",
        input="0x",
        function_selector="0x",
        is_contract_creation=False,
        dex_route=DexRoute(price_impact_bps=impact_bps) if impact_bps is not None else None,
        flash_loan=FlashLoanSignal(providers=(AAVE_POOL,)) if flash_loan else None,
    )


def make_request(*payloads: FeaturePayload) -> ScoreRequest:
    payloads = payloads or (make_payload(),)
    return ScoreRequest(
        feature_version="tx-risk-features/poc-v1",
        request_hash=REQUEST_HASH,
        transactions=tuple(ScoreRequestItem(tx_hash=p.tx_hash, payload=p) for p in payloads),
    )


MODEL_RESPONSE = {
    "request_hash": REQUEST_HASH,
    "model": {"name": "risk-model", "version": "2025-01"},
    "results": [
        {
            "tx_hash": TX_HASH,
            "verdict": "suspicious",
            "confidence": {"overall": 0.8},
            "descriptors": [
                {"id": "dex.high_price_impact", "severity": 0.6, "confidence": 0.7, "why": "Price impact 12%"},
            ],
            "error": None,
        }
    ],
}


def schema_output(payload: Any) -> dict:
    return {
        "output": [
            {"type": "reasoning", "content": []},
            {
                "type": "output_json_schema",
                "content": [{"type": "output_json_schema", "json": payload}],
            },
        ]
    }


# =============================================================
# FAKE HTTP SESSION
# =============================================================

class FakeResponse:
    def __init__(self, status: int, body: Any, delay: float = 0.0):
        self.status = status
        self._body = body
        self.delay = delay

    async def json(self, content_type=None):
        if isinstance(self._body, str):
            return json.loads(self._body)
        return self._body

    async def text(self):
        return self._body if isinstance(self._body, str) else json.dumps(self._body)


class FakeRequestContext:
    def __init__(self, response: FakeResponse):
        self._response = response

    async def __aenter__(self):
        if self._response.delay:
            await asyncio.sleep(self._response.delay)
        return self._response

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Records posts and replays one canned response."""

    def __init__(self, status: int = 200, body: Any = None, delay: float = 0.0):
        self.response = FakeResponse(status, body, delay)
        self.calls: List[dict] = []
        self.closed = False

    def post(self, url, json=None, headers=None):
        self.calls.append({"url": url, "json": json, "headers": headers})
        return FakeRequestContext(self.response)

    async def close(self):
        self.closed = True


# =============================================================
# TEST: Offline rules adapter
# =============================================================

class TestRulesAdapter:
    """Deterministic offline scoring."""

    @pytest.mark.parametrize("impact, flash_loan, verdict", [
        (2000, True, Verdict.SECURITY_CONCERN),
        (1600, True, Verdict.SECURITY_CONCERN),
        (1500, True, Verdict.SUSPICIOUS),
        (2000, False, Verdict.SUSPICIOUS),
        (900, False, Verdict.SUSPICIOUS),
        (800, False, Verdict.NORMAL),
        (100, False, Verdict.NORMAL),
        (None, True, Verdict.NORMAL),
        (None, False, Verdict.NORMAL),
    ])
    def test_verdict_table(self, impact, flash_loan, verdict):
        assert RulesAdapter.derive_verdict(make_payload(impact, flash_loan)) == verdict

    def test_confidence_by_verdict(self):
        adapter = RulesAdapter()
        assert adapter.evaluate(TX_HASH, make_payload(100)).confidence_overall == 0.2
        assert adapter.evaluate(TX_HASH, make_payload(900)).confidence_overall == 0.6

    def test_price_impact_descriptor(self):
        [descriptor] = RulesAdapter.build_descriptors(make_payload(1000))

        assert descriptor.id == "dex.high_price_impact"
        assert descriptor.severity == 0.5
        assert descriptor.confidence == 0.5
        assert descriptor.why == "Price impact 10.00%"

    def test_price_impact_severity_saturates(self):
        [descriptor] = RulesAdapter.build_descriptors(make_payload(4000))
        assert descriptor.severity == 1.0

    def test_zero_impact_has_no_descriptor(self):
        assert RulesAdapter.build_descriptors(make_payload(0)) == []

    def test_flash_loan_descriptor(self):
        impact, flash = RulesAdapter.build_descriptors(make_payload(2000, flash_loan=True))

        assert impact.id == "dex.high_price_impact"
        assert flash.id == "flash.loan_detected"
        assert flash.severity == 0.7
        assert flash.confidence == 0.6

    @pytest.mark.asyncio
    async def test_score_envelope(self):
        envelope = await RulesAdapter().score(make_request(make_payload(900)))

        assert envelope.request_hash == REQUEST_HASH
        assert envelope.model.name == "rules-offline"
        assert envelope.model.version == "poc-v1"
        assert [result.tx_hash for result in envelope.results] == [TX_HASH]
        assert envelope.results[0].error is None

    @pytest.mark.asyncio
    async def test_output_passes_validation(self):
        envelope = await RulesAdapter().score(make_request(make_payload(2000, flash_loan=True)))
        assert validate_model_response(envelope.to_dict()) == envelope

    @pytest.mark.asyncio
    async def test_deterministic(self):
        request = make_request(make_payload(1234, flash_loan=True))
        adapter = RulesAdapter()

        assert (await adapter.score(request)) == (await adapter.score(request))
        assert adapter.is_remote is False


# =============================================================
# TEST: Payload extraction
# =============================================================

class TestExtractJsonPayload:
    """Locating the JSON document in the model output."""

    def test_schema_output_part(self):
        assert extract_json_payload(schema_output(MODEL_RESPONSE)) == MODEL_RESPONSE

    def test_json_part(self):
        raw = {"output": [{"type": "output_json_schema", "content": [{"type": "json", "json": MODEL_RESPONSE}]}]}
        assert extract_json_payload(raw) == MODEL_RESPONSE

    def test_text_part(self):
        raw = {
            "output": [{
                "type": "output_json_schema",
                "content": [{"type": "text", "text": json.dumps(MODEL_RESPONSE)}],
            }]
        }
        assert extract_json_payload(raw) == MODEL_RESPONSE

    def test_chat_choices(self):
        raw = {"choices": [{"message": {"content": json.dumps(MODEL_RESPONSE)}}]}
        assert extract_json_payload(raw) == MODEL_RESPONSE

    def test_invalid_text_json(self):
        raw = {"output": [{"type": "output_json_schema", "content": [{"type": "text", "text": "not json"}]}]}
        with pytest.raises(ModelResponseFormatError):
            extract_json_payload(raw)

    @pytest.mark.parametrize("raw", [
        {},
        {"output": []},
        {"output": [{"type": "message", "content": []}]},
        {"choices": []},
        ["not", "an", "object"],
    ])
    def test_missing_payload(self, raw):
        with pytest.raises(ModelResponseFormatError):
            extract_json_payload(raw)


# =============================================================
# TEST: Remote adapter
# =============================================================

class TestRemoteModelAdapter:
    """HTTP model calls against a fake session."""

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            RemoteModelAdapter(ModelSettings(api_key=None))
        with pytest.raises(ValueError):
            RemoteModelAdapter(ModelSettings(api_key="   "))

    def test_endpoint(self, remote_settings):
        adapter = RemoteModelAdapter(replace(remote_settings, base_url="https://models.example.test/v1/"))
        assert adapter.endpoint == "https://models.example.test/v1/responses"
        assert adapter.is_remote is True

    @pytest.mark.asyncio
    async def test_success(self, remote_settings):
        session = FakeSession(body=schema_output(MODEL_RESPONSE))
        adapter = RemoteModelAdapter(remote_settings, session=session)

        envelope = await adapter.score(make_request())

        assert envelope.model.name == "risk-model"
        assert envelope.results[0].verdict == Verdict.SUSPICIOUS
        assert envelope.results[0].descriptors[0].why == "Price impact 12%"

    @pytest.mark.asyncio
    async def test_request_shape(self, remote_settings):
        session = FakeSession(body=schema_output(MODEL_RESPONSE))
        adapter = RemoteModelAdapter(remote_settings, session=session)

        await adapter.score(make_request(make_payload(900)))

        [call] = session.calls
        assert call["url"] == "https://models.example.test/v1/responses"
        assert call["headers"]["Authorization"] == "Bearer sk-test"
        assert call["headers"]["OpenAI-Organization"] == "org-test"

        body = call["json"]
        assert body["model"] == "risk-model"
        assert body["temperature"] == 0.1
        assert body["max_output_tokens"] == 1500
        assert body["response_format"]["json_schema"]["name"] == RESPONSE_SCHEMA_NAME
        assert body["metadata"] == {"request_hash": REQUEST_HASH, "caller": "block-explorer-ai-scorer"}

        system, user = body["input"]
        assert system["role"] == "system"
        assert "dex.high_price_impact" in system["content"][0]["text"]
        sent = json.loads(user["content"][0]["text"])
        assert sent["request_hash"] == REQUEST_HASH
        assert sent["transactions"][0]["tx_hash"] == TX_HASH
        assert sent["transactions"][0]["features"]["dexRoute"] == {"priceImpactBps": 900}

    @pytest.mark.asyncio
    async def test_no_organization_header(self, remote_settings):
        session = FakeSession(body=schema_output(MODEL_RESPONSE))
        adapter = RemoteModelAdapter(replace(remote_settings, organization=None), session=session)

        await adapter.score(make_request())

        assert "OpenAI-Organization" not in session.calls[0]["headers"]

    @pytest.mark.asyncio
    async def test_chat_choices_fallback(self, remote_settings):
        body = {"choices": [{"message": {"content": json.dumps(MODEL_RESPONSE)}}]}
        adapter = RemoteModelAdapter(remote_settings, session=FakeSession(body=body))

        envelope = await adapter.score(make_request())
        assert envelope.request_hash == REQUEST_HASH

    @pytest.mark.asyncio
    async def test_non_2xx_status(self, remote_settings):
        adapter = RemoteModelAdapter(remote_settings, session=FakeSession(status=429, body="x" * 600))

        with pytest.raises(ModelRequestError) as exc_info:
            await adapter.score(make_request())

        assert exc_info.value.status_code == 429
        assert exc_info.value.response_body == "x" * 500
        assert exc_info.value.adapter_name == "openai-http"

    @pytest.mark.asyncio
    async def test_body_not_json(self, remote_settings):
        adapter = RemoteModelAdapter(remote_settings, session=FakeSession(body="<html>"))

        with pytest.raises(ModelResponseFormatError):
            await adapter.score(make_request())

    @pytest.mark.asyncio
    async def test_missing_payload(self, remote_settings):
        adapter = RemoteModelAdapter(remote_settings, session=FakeSession(body={"output": []}))

        with pytest.raises(ModelResponseFormatError):
            await adapter.score(make_request())

    @pytest.mark.asyncio
    async def test_invalid_payload(self, remote_settings):
        invalid = dict(MODEL_RESPONSE, results=[{"tx_hash": TX_HASH, "verdict": "unknown"}])
        adapter = RemoteModelAdapter(remote_settings, session=FakeSession(body=schema_output(invalid)))

        with pytest.raises(ResponseValidationError):
            await adapter.score(make_request())

    @pytest.mark.asyncio
    async def test_timeout(self, remote_settings):
        settings = replace(remote_settings, timeout_seconds=0.05)
        session = FakeSession(body=schema_output(MODEL_RESPONSE), delay=1.0)
        adapter = RemoteModelAdapter(settings, session=session)

        with pytest.raises(ModelTimeoutError) as exc_info:
            await adapter.score(make_request())

        assert exc_info.value.timeout_seconds == 0.05

    @pytest.mark.asyncio
    async def test_injected_session_not_closed(self, remote_settings):
        session = FakeSession(body=schema_output(MODEL_RESPONSE))

        async with RemoteModelAdapter(remote_settings, session=session) as adapter:
            await adapter.score(make_request())

        assert session.closed is False


# =============================================================
# TEST: Adapter selection
# =============================================================

class TestSelectAdapter:
    """Mode-driven adapter choice."""

    def test_offline_ignores_credentials(self, remote_settings):
        config = AiScoringConfig(adapter_mode=AdapterMode.OFFLINE, model=remote_settings)
        assert isinstance(select_adapter(config), RulesAdapter)

    @pytest.mark.parametrize("mode", [AdapterMode.AUTO, AdapterMode.EXTERNAL])
    def test_remote_with_credentials(self, mode, remote_settings):
        config = AiScoringConfig(adapter_mode=mode, model=remote_settings)
        assert isinstance(select_adapter(config), RemoteModelAdapter)

    def test_auto_without_credentials_falls_back_quietly(self, caplog):
        caplog.set_level(logging.WARNING, logger="ai_risk_scoring.adapters.factory")
        config = AiScoringConfig(adapter_mode=AdapterMode.AUTO, model=ModelSettings(api_key=None))

        assert isinstance(select_adapter(config), RulesAdapter)
        assert caplog.records == []

    def test_external_without_credentials_warns(self, caplog):
        caplog.set_level(logging.WARNING, logger="ai_risk_scoring.adapters.factory")
        config = AiScoringConfig(adapter_mode=AdapterMode.EXTERNAL, model=ModelSettings(api_key=None))

        assert isinstance(select_adapter(config), RulesAdapter)
        assert any(record.levelno == logging.WARNING for record in caplog.records)

    def test_external_without_model_name(self, remote_settings):
        config = AiScoringConfig(adapter_mode=AdapterMode.EXTERNAL, model=replace(remote_settings, name=""))
        assert isinstance(select_adapter(config), RulesAdapter)
