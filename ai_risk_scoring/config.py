"""
AI Risk Scoring - Configuration.

============================================================
PURPOSE
============================================================
Configuration dataclasses for the scoring pipeline and the
remote risk model, plus the environment loader used at
process start.

============================================================
DESIGN PRINCIPLES
============================================================
- Immutable configurations
- Disabled by default (scoring is opt-in)
- Invalid values fail at load time, never mid-pipeline

============================================================
ENVIRONMENT
============================================================
AI_SCORING_ENABLED                 true/false
AI_SCORING_FEATURE_VERSION         payload version tag
AI_SCORING_ADAPTER_MODE            auto | external | offline
AI_SCORING_MODEL_BASE_URL          remote model base URL
AI_SCORING_MODEL_NAME              remote model name
AI_SCORING_MODEL_API_KEY           bearer credential
                                   (falls back to OPENAI_API_KEY)
AI_SCORING_MODEL_ORGANIZATION      optional organization header
AI_SCORING_MODEL_TIMEOUT_SECONDS   request timeout override
BASE_TOKEN_SYMBOL / BASE_TOKEN_DECIMALS / BASE_TOKEN_ADDRESS
                                   native token description

============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

from ai_risk_scoring.exceptions import ConfigurationError
from ai_risk_scoring.types import AdapterMode


logger = logging.getLogger(__name__)


DEFAULT_FEATURE_VERSION = "tx-risk-features/poc-v1"
DEFAULT_MODEL_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL_NAME = "gpt-4o-mini"
DEFAULT_TIMEOUT_SECONDS = 15.0

DEFAULT_BASE_TOKEN_SYMBOL = "ETH"
DEFAULT_BASE_TOKEN_DECIMALS = 18
DEFAULT_BASE_TOKEN_ADDRESS = "0x000000000000000000000000000000000000800a"

_TRUE_VALUES = {"1", "true", "yes", "on"}


# ============================================================
# REMOTE MODEL SETTINGS
# ============================================================


@dataclass(frozen=True)
class ModelSettings:
    """Connection settings for the remote risk model."""

    base_url: str = DEFAULT_MODEL_BASE_URL
    name: str = DEFAULT_MODEL_NAME
    api_key: Optional[str] = None
    organization: Optional[str] = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


# ============================================================
# PIPELINE CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class AiScoringConfig:
    """
    Top-level scoring configuration.

    The base token is the chain's native asset. It never appears
    in the token metadata store, so its symbol and decimals are
    resolved from here.
    """

    enabled: bool = False
    feature_version: str = DEFAULT_FEATURE_VERSION
    adapter_mode: AdapterMode = AdapterMode.AUTO
    model: ModelSettings = field(default_factory=ModelSettings)

    base_token_symbol: str = DEFAULT_BASE_TOKEN_SYMBOL
    base_token_decimals: int = DEFAULT_BASE_TOKEN_DECIMALS
    base_token_address: str = DEFAULT_BASE_TOKEN_ADDRESS

    def __post_init__(self) -> None:
        # Frozen, so normalize through object.__setattr__
        object.__setattr__(self, "base_token_address", self.base_token_address.lower())


# ============================================================
# LOADERS
# ============================================================


def parse_adapter_mode(value: Optional[str]) -> AdapterMode:
    """Parse an adapter mode string; empty means AUTO."""
    text = (value or "").strip().lower()
    if not text:
        return AdapterMode.AUTO
    try:
        return AdapterMode(text)
    except ValueError as e:
        raise ConfigurationError(
            f"Unknown adapter mode '{value}', expected one of "
            f"{[mode.value for mode in AdapterMode]}",
            config_key="AI_SCORING_ADAPTER_MODE",
            original_error=e,
        ) from e


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"{key} must be a number, got '{raw}'",
            config_key=key,
            original_error=e,
        ) from e
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive, got {value}", config_key=key)
    return value


def _parse_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"{key} must be an integer, got '{raw}'",
            config_key=key,
            original_error=e,
        ) from e


def _optional(env: Mapping[str, str], key: str) -> Optional[str]:
    value = env.get(key)
    if value is None or not value.strip():
        return None
    return value.strip()


def load_config_from_env(env: Optional[Mapping[str, str]] = None) -> AiScoringConfig:
    """
    Build the scoring configuration from the environment.

    Args:
        env: Mapping to read instead of os.environ (tests).
            When omitted, a local .env file is loaded first.

    Raises:
        ConfigurationError: unknown adapter mode or non-numeric values
    """
    if env is None:
        load_dotenv()
        env = os.environ

    model = ModelSettings(
        base_url=_optional(env, "AI_SCORING_MODEL_BASE_URL") or DEFAULT_MODEL_BASE_URL,
        name=_optional(env, "AI_SCORING_MODEL_NAME") or DEFAULT_MODEL_NAME,
        api_key=_optional(env, "AI_SCORING_MODEL_API_KEY") or _optional(env, "OPENAI_API_KEY"),
        organization=_optional(env, "AI_SCORING_MODEL_ORGANIZATION"),
        timeout_seconds=_parse_float(env, "AI_SCORING_MODEL_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS),
    )

    config = AiScoringConfig(
        enabled=_parse_bool(env.get("AI_SCORING_ENABLED"), False),
        feature_version=_optional(env, "AI_SCORING_FEATURE_VERSION") or DEFAULT_FEATURE_VERSION,
        adapter_mode=parse_adapter_mode(env.get("AI_SCORING_ADAPTER_MODE")),
        model=model,
        base_token_symbol=_optional(env, "BASE_TOKEN_SYMBOL") or DEFAULT_BASE_TOKEN_SYMBOL,
        base_token_decimals=_parse_int(env, "BASE_TOKEN_DECIMALS", DEFAULT_BASE_TOKEN_DECIMALS),
        base_token_address=_optional(env, "BASE_TOKEN_ADDRESS") or DEFAULT_BASE_TOKEN_ADDRESS,
    )

    logger.debug(
        f"AI scoring config loaded: enabled={config.enabled} "
        f"mode={config.adapter_mode.value} feature_version={config.feature_version}"
    )
    return config
