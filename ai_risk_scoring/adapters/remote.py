"""
Remote Risk Model Adapter - JSON-schema constrained HTTP model.

Request:
    POST {base_url}/responses
    Authorization: Bearer <api_key>
    OpenAI-Organization: <organization>   (optional)

Response handling:
    1. Non-2xx status          -> ModelRequestError
    2. Timeout                 -> ModelTimeoutError (call is aborted)
    3. Locate the JSON payload -> ModelResponseFormatError if none
    4. validate_model_response -> ResponseValidationError
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from ai_risk_scoring.adapters.base import RiskModelAdapter
from ai_risk_scoring.config import ModelSettings
from ai_risk_scoring.descriptors import DESCRIPTOR_LABELS
from ai_risk_scoring.exceptions import (
    ModelRequestError,
    ModelResponseFormatError,
    ModelTimeoutError,
)
from ai_risk_scoring.types import ModelResponseEnvelope, ScoreRequest
from ai_risk_scoring.validation import (
    RESPONSE_JSON_SCHEMA,
    RESPONSE_SCHEMA_NAME,
    validate_model_response,
)


logger = logging.getLogger(__name__)


REMOTE_ADAPTER_NAME = "openai-http"
REQUEST_CALLER = "block-explorer-ai-scorer"
TEMPERATURE = 0.1
MAX_OUTPUT_TOKENS = 1500


SYSTEM_PROMPT = f"""
You assess the risk of individual blockchain transactions for a block explorer.
For every transaction in the request:
- Return exactly one verdict: "normal", "suspicious" or "security_concern".
- Keep every severity and confidence value within [0, 1].
- Use these descriptor ids whenever one fits: {", ".join(DESCRIPTOR_LABELS)}.
  Only introduce a new id when none of them applies; new ids are kebab-case with a
  domain prefix, for example protocol.sandwich-pattern.
- Give each descriptor a short "why" that cites evidence from the supplied features
  (addresses, selectors, price impact and similar).
- Never state facts that are not present in the features.
- When data is incomplete, use "suspicious" with moderate confidence at most. Reserve
  "security_concern" for strong signals such as a flash loan combined with high price
  impact, known malicious addresses or suspicious bridge routes.
Answer strictly in the provided JSON schema.
""".strip()


def _find_by_type(items: Any, item_type: str) -> Optional[Dict[str, Any]]:
    if not isinstance(items, list):
        return None
    for item in items:
        if isinstance(item, dict) and item.get("type") == item_type:
            return item
    return None


def extract_json_payload(raw: Any) -> Any:
    """
    Locate the schema-constrained JSON in a model response.

    Search order:
        output[type=output_json_schema].content[type=output_json_schema].json
        output[type=output_json_schema].content[type=json].json
        output[type=output_json_schema].content[type=text].text  (parsed)
        choices[0].message.content                               (parsed)

    Raises:
        ModelResponseFormatError: If no JSON payload can be located
    """
    if not isinstance(raw, dict):
        raise ModelResponseFormatError("Model response body is not a JSON object")

    schema_output = _find_by_type(raw.get("output"), "output_json_schema")
    if schema_output is not None:
        content = schema_output.get("content")
        for part_type in ("output_json_schema", "json"):
            part = _find_by_type(content, part_type)
            if part is not None and part.get("json"):
                return part["json"]

        text_part = _find_by_type(content, "text")
        if text_part is not None and isinstance(text_part.get("text"), str):
            try:
                return json.loads(text_part["text"])
            except ValueError as e:
                raise ModelResponseFormatError(
                    "Model response provided text output that is not valid JSON",
                    original_error=e,
                ) from e

    choices = raw.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, str) and content.strip():
            try:
                return json.loads(content)
            except ValueError as e:
                raise ModelResponseFormatError(
                    "Model message content is not valid JSON",
                    original_error=e,
                ) from e

    raise ModelResponseFormatError("Model response missing JSON schema output payload")


class RemoteModelAdapter(RiskModelAdapter):
    """
    HTTP adapter for a hosted language model.

    Owns its aiohttp session unless one is injected.
    """

    def __init__(
        self,
        settings: ModelSettings,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        if not settings.has_credentials:
            raise ValueError("RemoteModelAdapter requires an API key")
        self._settings = settings
        self._session = session
        self._owns_session = session is None

    @property
    def name(self) -> str:
        return REMOTE_ADAPTER_NAME

    @property
    def is_remote(self) -> bool:
        return True

    @property
    def endpoint(self) -> str:
        return f"{self._settings.base_url.rstrip('/')}/responses"

    def build_request_body(self, request: ScoreRequest) -> Dict[str, Any]:
        """Serialize a ScoreRequest into the model call body."""
        request_payload = {
            "request_hash": request.request_hash,
            "feature_version": request.feature_version,
            "transactions": [
                {"tx_hash": item.tx_hash, "features": item.payload.to_dict()}
                for item in request.transactions
            ],
        }

        return {
            "model": self._settings.name,
            "temperature": TEMPERATURE,
            "max_output_tokens": MAX_OUTPUT_TOKENS,
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": RESPONSE_SCHEMA_NAME,
                    "schema": RESPONSE_JSON_SCHEMA,
                },
            },
            "input": [
                {
                    "role": "system",
                    "content": [{"type": "text", "text": SYSTEM_PROMPT}],
                },
                {
                    "role": "user",
                    "content": [{"type": "text", "text": json.dumps(request_payload, indent=2)}],
                },
            ],
            "metadata": {
                "request_hash": request.request_hash,
                "caller": REQUEST_CALLER,
            },
        }

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._settings.api_key}",
        }
        if self._settings.organization:
            headers["OpenAI-Organization"] = self._settings.organization
        return headers

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def _post(self, body: Dict[str, Any]) -> Any:
        session = await self._get_session()
        try:
            async with session.post(self.endpoint, json=body, headers=self._get_headers()) as response:
                if response.status < 200 or response.status >= 300:
                    text = await response.text()
                    raise ModelRequestError(
                        f"Model request failed with status {response.status}",
                        adapter_name=self.name,
                        status_code=response.status,
                        response_body=text[:500],
                    )
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise ModelResponseFormatError(
                        "Model response body is not valid JSON",
                        adapter_name=self.name,
                        original_error=e,
                    ) from e
        except aiohttp.ClientError as e:
            raise ModelRequestError(
                f"Connection error: {e}",
                adapter_name=self.name,
                original_error=e,
            ) from e

    async def score(self, request: ScoreRequest) -> ModelResponseEnvelope:
        body = self.build_request_body(request)
        timeout = self._settings.timeout_seconds

        try:
            raw = await asyncio.wait_for(self._post(body), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ModelTimeoutError(
                f"Model request timed out after {timeout}s",
                adapter_name=self.name,
                timeout_seconds=timeout,
                original_error=e,
            ) from e

        payload = extract_json_payload(raw)
        envelope = validate_model_response(payload)
        logger.debug(
            f"[{self.name}] Scored request {request.request_hash[:12]} "
            f"with {len(envelope.results)} result(s)"
        )
        return envelope

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
