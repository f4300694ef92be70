"""
AI Risk Scoring Exceptions - Custom exception hierarchy.

Decode and heuristic gaps never raise; they degrade to absence.
Everything below is raised by configuration loading, the risk
model adapters and the response validator, and is contained by
the scoring service.
"""

from datetime import datetime
from typing import Any, Dict, Optional


class AiRiskScoringError(Exception):
    """Base exception for all AI risk scoring errors."""

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        adapter_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.tx_hash = tx_hash
        self.adapter_name = adapter_name
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "tx_hash": self.tx_hash,
            "adapter_name": self.adapter_name,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.adapter_name:
            parts.append(f"[adapter={self.adapter_name}]")
        if self.tx_hash:
            parts.append(f"[tx={self.tx_hash}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class ConfigurationError(AiRiskScoringError):
    """Invalid or inconsistent scoring configuration."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, original_error=original_error, context=context)
        self.config_key = config_key

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data["config_key"] = self.config_key
        return data


class ModelAdapterError(AiRiskScoringError):
    """A risk model adapter failed to produce a usable envelope."""


class ModelRequestError(ModelAdapterError):
    """Non-2xx HTTP status or transport failure talking to the model."""

    def __init__(
        self,
        message: str,
        adapter_name: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            adapter_name=adapter_name,
            original_error=original_error,
            context=context,
        )
        self.status_code = status_code
        self.response_body = response_body

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "response_body": self.response_body,
        })
        return data


class ModelTimeoutError(ModelAdapterError):
    """The model call exceeded its timeout and was aborted."""

    def __init__(
        self,
        message: str,
        adapter_name: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            adapter_name=adapter_name,
            original_error=original_error,
            context=context,
        )
        self.timeout_seconds = timeout_seconds

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data["timeout_seconds"] = self.timeout_seconds
        return data


class ModelResponseFormatError(ModelAdapterError):
    """No parsable JSON payload could be located in the model response."""


class ResponseValidationError(ModelAdapterError):
    """A model response failed structural validation."""

    def __init__(
        self,
        message: str,
        field_path: Optional[str] = None,
        adapter_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, adapter_name=adapter_name, context=context)
        self.field_path = field_path

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data["field_path"] = self.field_path
        return data
