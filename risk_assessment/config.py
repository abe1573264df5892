"""
Risk Assessment Core - Configuration.

============================================================
PURPOSE
============================================================
Configuration dataclasses and default values for scoring,
recommendation fallbacks, store access and retry behaviour.

============================================================
DESIGN PRINCIPLES
============================================================
- Immutable configurations
- Defaults reproduce the production behaviour exactly
- Environment overrides via load_config_from_env()

============================================================
SCORE THRESHOLDS
============================================================
total <= 2         -> Low
3 <= total <= 5    -> Moderate
total > 5          -> High

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv

from .types import AdviceRecord, RiskLevel


# ============================================================
# RETRY CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class RetryConfig:
    """
    Backoff schedule for store calls.

    With the defaults a failing call is attempted four times,
    waiting 1s, 2s and 4s between attempts.
    """

    max_retries: int = 3
    base_delay_seconds: float = 1.0
    backoff_factor: float = 2.0
    max_delay_seconds: float = 4.0

    def delay_for(self, retry_number: int) -> float:
        """Delay before retry N (1-based)."""
        delay = self.base_delay_seconds * (self.backoff_factor ** (retry_number - 1))
        return min(delay, self.max_delay_seconds)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_retries": self.max_retries,
            "base_delay_seconds": self.base_delay_seconds,
            "backoff_factor": self.backoff_factor,
            "max_delay_seconds": self.max_delay_seconds,
        }


# ============================================================
# SCORING CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class ScoringConfig:
    """Upper bounds (inclusive) of the Low and Moderate bands."""

    low_max_score: int = 2
    moderate_max_score: int = 5

    def classify(self, total_score: float) -> RiskLevel:
        if total_score <= self.low_max_score:
            return RiskLevel.LOW
        if total_score <= self.moderate_max_score:
            return RiskLevel.MODERATE
        return RiskLevel.HIGH

    def to_dict(self) -> Dict[str, Any]:
        return {
            "low_max_score": self.low_max_score,
            "moderate_max_score": self.moderate_max_score,
        }


# ============================================================
# ADVICE CONFIGURATION
# ============================================================


DEFAULT_PLACEHOLDER_ADVICE = "No specific advice available."
DEFAULT_NO_MATCH_ADVICE = "No specific advice available for this score range."
DEFAULT_CALCULATION_ERROR_ADVICE = "Unable to calculate risk score due to an error."


FALLBACK_ADVICE: Tuple[AdviceRecord, ...] = (
    AdviceRecord(
        min_score=0,
        max_score=2,
        risk_level=RiskLevel.LOW.value,
        normalized_risk_level=RiskLevel.LOW.value,
        advice_text=(
            "Low risk. Regular eye exams as recommended by your optometrist "
            "are sufficient."
        ),
    ),
    AdviceRecord(
        min_score=3,
        max_score=5,
        risk_level=RiskLevel.MODERATE.value,
        normalized_risk_level=RiskLevel.MODERATE.value,
        advice_text=(
            "Moderate risk. Consider more frequent eye exams and discuss with "
            "your doctor about potential preventive measures."
        ),
    ),
    AdviceRecord(
        min_score=6,
        max_score=100,
        risk_level=RiskLevel.HIGH.value,
        normalized_risk_level=RiskLevel.HIGH.value,
        advice_text=(
            "High risk. Regular monitoring is strongly recommended. Discuss with "
            "your specialist about comprehensive eye exams and treatment options."
        ),
    ),
)


@dataclass(frozen=True)
class AdviceConfig:
    """Fixed texts and the built-in fallback advice list."""

    placeholder_text: str = DEFAULT_PLACEHOLDER_ADVICE
    no_match_text: str = DEFAULT_NO_MATCH_ADVICE
    calculation_error_text: str = DEFAULT_CALCULATION_ERROR_ADVICE
    fallback_advice: Tuple[AdviceRecord, ...] = FALLBACK_ADVICE
    default_min_score: int = 0
    default_max_score: int = 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "placeholder_text": self.placeholder_text,
            "no_match_text": self.no_match_text,
            "calculation_error_text": self.calculation_error_text,
            "fallback_advice": [r.to_dict() for r in self.fallback_advice],
            "default_min_score": self.default_min_score,
            "default_max_score": self.default_max_score,
        }


# ============================================================
# STORE CONFIGURATION
# ============================================================


STORE_BACKENDS = ("sql", "procedure", "rest")


@dataclass(frozen=True)
class StoreConfig:
    """
    Which persistence backend to use and how to reach it.

    - sql: direct table queries through SQLAlchemy
    - procedure: the two stored procedures through SQLAlchemy
    - rest: PostgREST-style HTTP API through aiohttp
    """

    backend: str = "sql"
    database_url: str = "sqlite+aiosqlite:///./risk_assessment.db"
    rest_url: Optional[str] = None
    rest_api_key: Optional[str] = None
    rest_use_procedures: bool = False
    request_timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.backend not in STORE_BACKENDS:
            raise ValueError(f"Unsupported store backend: {self.backend}")

    def to_dict(self) -> Dict[str, Any]:
        # Secrets are masked.
        return {
            "backend": self.backend,
            "database_url": self.database_url.split("@")[-1],
            "rest_url": self.rest_url,
            "rest_api_key": "***" if self.rest_api_key else None,
            "rest_use_procedures": self.rest_use_procedures,
            "request_timeout_seconds": self.request_timeout_seconds,
        }


# ============================================================
# MASTER CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class RiskAssessmentConfig:
    """Top-level configuration for the risk assessment core."""

    retry: RetryConfig = field(default_factory=RetryConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    advice: AdviceConfig = field(default_factory=AdviceConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    engine_version: str = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "retry": self.retry.to_dict(),
            "scoring": self.scoring.to_dict(),
            "advice": self.advice.to_dict(),
            "store": self.store.to_dict(),
            "engine_version": self.engine_version,
        }


def get_default_config() -> RiskAssessmentConfig:
    return RiskAssessmentConfig()


def _getenv_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def _getenv_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _getenv_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_config_from_env(dotenv_path: Optional[str] = None) -> RiskAssessmentConfig:
    """
    Build configuration from environment variables.

    Reads a .env file first when present. Recognised variables:
    RISK_STORE_BACKEND, DATABASE_URL, RISK_REST_URL, RISK_REST_API_KEY,
    RISK_REST_USE_PROCEDURES, RISK_REQUEST_TIMEOUT_SECONDS,
    RISK_MAX_RETRIES, RISK_RETRY_BASE_DELAY_SECONDS,
    RISK_RETRY_MAX_DELAY_SECONDS, RISK_LOW_MAX_SCORE,
    RISK_MODERATE_MAX_SCORE.
    """
    load_dotenv(dotenv_path)

    defaults = get_default_config()

    retry = RetryConfig(
        max_retries=_getenv_int("RISK_MAX_RETRIES", defaults.retry.max_retries),
        base_delay_seconds=_getenv_float(
            "RISK_RETRY_BASE_DELAY_SECONDS", defaults.retry.base_delay_seconds
        ),
        backoff_factor=defaults.retry.backoff_factor,
        max_delay_seconds=_getenv_float(
            "RISK_RETRY_MAX_DELAY_SECONDS", defaults.retry.max_delay_seconds
        ),
    )

    scoring = ScoringConfig(
        low_max_score=_getenv_int("RISK_LOW_MAX_SCORE", defaults.scoring.low_max_score),
        moderate_max_score=_getenv_int(
            "RISK_MODERATE_MAX_SCORE", defaults.scoring.moderate_max_score
        ),
    )

    store = StoreConfig(
        backend=os.getenv("RISK_STORE_BACKEND", defaults.store.backend).strip().lower(),
        database_url=os.getenv("DATABASE_URL") or defaults.store.database_url,
        rest_url=os.getenv("RISK_REST_URL") or None,
        rest_api_key=os.getenv("RISK_REST_API_KEY") or None,
        rest_use_procedures=_getenv_bool(
            "RISK_REST_USE_PROCEDURES", defaults.store.rest_use_procedures
        ),
        request_timeout_seconds=_getenv_float(
            "RISK_REQUEST_TIMEOUT_SECONDS", defaults.store.request_timeout_seconds
        ),
    )

    return RiskAssessmentConfig(
        retry=retry,
        scoring=scoring,
        advice=defaults.advice,
        store=store,
        engine_version=defaults.engine_version,
    )
