"""
Response Validator.

============================================================
PURPOSE
============================================================
Structural check of a risk model response before anything
downstream trusts it. Any violation rejects the whole response;
there is no partial acceptance.

Checks, in order:
1. payload is an object
2. request_hash is a non-empty string
3. model is an object with string name and version
4. results is an array; each result has string tx_hash, a
   known verdict, numeric confidence.overall, a descriptors
   array (string id, numeric severity/confidence, optional
   string why) and an error that is absent, null or a string

Range checks are NOT done here; the normalizer clamps.

============================================================
"""

from typing import Any, Dict, List

from ai_risk_scoring.exceptions import ResponseValidationError
from ai_risk_scoring.types import (
    ModelDescriptor,
    ModelInfo,
    ModelResponseEnvelope,
    ModelResult,
    Verdict,
)


# JSON schema handed to the remote model as its response format.
RESPONSE_SCHEMA_NAME = "tx_ai_risk_response"

RESPONSE_JSON_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["request_hash", "model", "results"],
    "properties": {
        "request_hash": {"type": "string"},
        "model": {
            "type": "object",
            "required": ["name", "version"],
            "properties": {
                "name": {"type": "string"},
                "version": {"type": "string"},
            },
        },
        "results": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["tx_hash", "verdict", "confidence", "descriptors"],
                "properties": {
                    "tx_hash": {"type": "string"},
                    "verdict": {"type": "string", "enum": Verdict.values()},
                    "confidence": {
                        "type": "object",
                        "required": ["overall"],
                        "properties": {
                            "overall": {"type": "number"},
                        },
                    },
                    "descriptors": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "required": ["id", "severity", "confidence"],
                            "properties": {
                                "id": {"type": "string"},
                                "severity": {"type": "number"},
                                "confidence": {"type": "number"},
                                "why": {"type": "string"},
                            },
                        },
                    },
                    "error": {"type": ["string", "null"]},
                },
            },
        },
    },
}


def _is_number(value: Any) -> bool:
    # bool is an int subclass; JSON true/false are not numbers
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _fail(message: str, field_path: str) -> ResponseValidationError:
    return ResponseValidationError(message, field_path=field_path)


def _validate_descriptor(raw: Any, path: str) -> ModelDescriptor:
    if not isinstance(raw, dict):
        raise _fail("Descriptor must be an object", path)
    if not isinstance(raw.get("id"), str):
        raise _fail("Descriptor id must be a string", f"{path}.id")
    if not _is_number(raw.get("severity")):
        raise _fail("Descriptor severity must be a number", f"{path}.severity")
    if not _is_number(raw.get("confidence")):
        raise _fail("Descriptor confidence must be a number", f"{path}.confidence")
    why = raw.get("why")
    if why is not None and not isinstance(why, str):
        raise _fail("Descriptor why must be a string", f"{path}.why")

    return ModelDescriptor(
        id=raw["id"],
        severity=float(raw["severity"]),
        confidence=float(raw["confidence"]),
        why=why,
    )


def _validate_result(raw: Any, path: str) -> ModelResult:
    if not isinstance(raw, dict):
        raise _fail("Result must be an object", path)
    if not isinstance(raw.get("tx_hash"), str):
        raise _fail("Result tx_hash must be a string", f"{path}.tx_hash")

    verdict = raw.get("verdict")
    if not isinstance(verdict, str) or verdict not in Verdict.values():
        raise _fail(f"Result verdict '{verdict}' is not one of {Verdict.values()}", f"{path}.verdict")

    confidence = raw.get("confidence")
    if not isinstance(confidence, dict) or not _is_number(confidence.get("overall")):
        raise _fail("Result confidence.overall must be a number", f"{path}.confidence.overall")

    descriptors = raw.get("descriptors")
    if not isinstance(descriptors, list):
        raise _fail("Result descriptors must be an array", f"{path}.descriptors")

    error = raw.get("error")
    if error is not None and not isinstance(error, str):
        raise _fail("Result error must be null or a string", f"{path}.error")

    return ModelResult(
        tx_hash=raw["tx_hash"],
        verdict=Verdict(verdict),
        confidence_overall=float(confidence["overall"]),
        descriptors=tuple(
            _validate_descriptor(item, f"{path}.descriptors[{index}]")
            for index, item in enumerate(descriptors)
        ),
        error=error,
    )


def validate_model_response(payload: Any) -> ModelResponseEnvelope:
    """
    Validate a raw model response.

    Args:
        payload: Parsed JSON from the model

    Returns:
        Typed ModelResponseEnvelope

    Raises:
        ResponseValidationError: on the first structural violation
    """
    if not isinstance(payload, dict):
        raise _fail("Model response is not an object", "$")

    request_hash = payload.get("request_hash")
    if not isinstance(request_hash, str) or not request_hash:
        raise _fail("Model response missing request_hash", "request_hash")

    model = payload.get("model")
    if not isinstance(model, dict):
        raise _fail("Model response missing model section", "model")
    if not isinstance(model.get("name"), str) or not isinstance(model.get("version"), str):
        raise _fail("Model response missing model name/version", "model")

    results = payload.get("results")
    if not isinstance(results, list):
        raise _fail("Model response results must be an array", "results")

    validated: List[ModelResult] = [
        _validate_result(item, f"results[{index}]") for index, item in enumerate(results)
    ]

    return ModelResponseEnvelope(
        request_hash=request_hash,
        model=ModelInfo(name=model["name"], version=model["version"]),
        results=tuple(validated),
        raw=payload,
    )
