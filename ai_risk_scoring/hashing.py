"""
Canonical request hashing.

The request hash identifies a scoring request by its content:
    sha256("{feature_version}:{tx_hash}:{canonical_json(payload)}")

canonical_json sorts object keys recursively, keeps array elements
as they are and drops None-valued object fields, so two payloads
that differ only in key insertion order hash identically while
absence and falsy values (False, 0, "") stay distinguishable.
"""

import hashlib
import json
from typing import Any, Mapping, Union

from ai_risk_scoring.types import FeaturePayload


def canonicalize(value: Any) -> Any:
    """Return a copy of value with keys sorted and None-valued fields removed."""
    if isinstance(value, Mapping):
        return {
            str(key): canonicalize(value[key])
            for key in sorted(value.keys(), key=str)
            if value[key] is not None
        }
    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]
    return value


def canonical_json(value: Any) -> str:
    """Serialize value to its canonical JSON text."""
    return json.dumps(
        canonicalize(value),
        separators=(",", ":"),
        ensure_ascii=False,
        sort_keys=True,
    )


def compute_request_hash(
    feature_version: str,
    tx_hash: str,
    payload: Union[FeaturePayload, Mapping[str, Any]],
) -> str:
    """
    Compute the hex SHA-256 request hash.

    Args:
        feature_version: Feature payload version tag
        tx_hash: Transaction hash the payload describes
        payload: FeaturePayload or its dict form
    """
    if isinstance(payload, FeaturePayload):
        payload = payload.to_dict()
    material = f"{feature_version}:{tx_hash}:{canonical_json(payload)}"
    return hashlib.sha256(material.encode("utf-8")).hexdigest()
