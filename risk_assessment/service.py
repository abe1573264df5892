"""
Risk Assessment Core - Service Wiring.

============================================================
PURPOSE
============================================================
Assemble a complete scoring stack from configuration:

    backend -> RetryPolicy -> ScoreConfigStore
                           -> RecommendationStore
    [ScoreConfigStore, LegacyWeightTable] -> ScoreCalculator

============================================================
"""

import json
import logging
import sys
from dataclasses import dataclass
from typing import Mapping, Optional

from database.engine import create_database_engine, create_session_factory

from .backend import AdviceBackend
from .calculator import ScoreCalculator
from .config import RiskAssessmentConfig, StoreConfig, get_default_config
from .labels import QuestionLabelResolver
from .matching import MatchResolver
from .notifications import FailureNotifier, LoggingNotifier, NoticeRateLimiter
from .repository import RiskAssessmentRepository, StoredProcedureRepository
from .rest_backend import RestAdviceBackend, TokenRefresher
from .retry import RetryPolicy
from .store import RecommendationStore
from .weights import LegacyWeightTable, ScoreConfigStore


logger = logging.getLogger(__name__)


# ============================================================
# LOGGING SETUP
# ============================================================


def setup_logging(level: str = "INFO", log_format: str = "text") -> logging.Logger:
    """
    Configure the risk_assessment logger hierarchy.

    Args:
        level: Log level
        log_format: Output format (json or text)

    Returns:
        Configured package logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    package_logger = logging.getLogger("risk_assessment")
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.setLevel(log_level)

    return package_logger


# ============================================================
# FACTORIES
# ============================================================


def create_backend(
    store_config: StoreConfig,
    token_refresher: Optional[TokenRefresher] = None,
) -> AdviceBackend:
    """Build the configured persistence backend."""
    if store_config.backend == "rest":
        if not store_config.rest_url:
            raise ValueError("rest backend requires rest_url")
        return RestAdviceBackend(
            base_url=store_config.rest_url,
            api_key=store_config.rest_api_key,
            use_procedures=store_config.rest_use_procedures,
            timeout=store_config.request_timeout_seconds,
            token_refresher=token_refresher,
        )

    engine = create_database_engine(
        store_config.database_url,
        pool_timeout=int(store_config.request_timeout_seconds),
    )
    session_factory = create_session_factory(engine)

    if store_config.backend == "procedure":
        return StoredProcedureRepository(session_factory, engine=engine)
    return RiskAssessmentRepository(session_factory, engine=engine)


@dataclass
class RiskAssessmentService:
    """A wired stack. Close it to release connections."""

    config: RiskAssessmentConfig
    backend: AdviceBackend
    retry_policy: RetryPolicy
    weights: ScoreConfigStore
    legacy_weights: LegacyWeightTable
    store: RecommendationStore
    calculator: ScoreCalculator

    async def close(self) -> None:
        await self.backend.close()


def build_service(
    config: Optional[RiskAssessmentConfig] = None,
    backend: Optional[AdviceBackend] = None,
    notifier: Optional[FailureNotifier] = None,
    question_catalog: Optional[Mapping[str, str]] = None,
    token_refresher: Optional[TokenRefresher] = None,
) -> RiskAssessmentService:
    """
    Wire the scoring stack.

    Args:
        config: Configuration; defaults are used if omitted
        backend: Pre-built backend, overrides config.store
        notifier: Receives transient network-failure notices
            (defaults to logging them)
        question_catalog: Question id -> question text for labels
        token_refresher: Returns a fresh access token (rest backend)

    Returns:
        RiskAssessmentService
    """
    config = config or get_default_config()
    backend = backend or create_backend(config.store, token_refresher=token_refresher)

    retry_policy = RetryPolicy(
        config=config.retry,
        refresh_credentials=backend.refresh_credentials,
    )

    weights = ScoreConfigStore(backend, retry_policy=retry_policy)
    legacy = LegacyWeightTable()

    store = RecommendationStore(
        backend,
        retry_policy=retry_policy,
        config=config.advice,
        notifier=notifier or LoggingNotifier(),
        rate_limiter=NoticeRateLimiter(),
    )

    calculator = ScoreCalculator(
        store,
        [weights, legacy],
        resolver=MatchResolver(no_match_text=config.advice.no_match_text),
        label_resolver=QuestionLabelResolver(catalog=question_catalog, legacy=legacy),
        scoring_config=config.scoring,
        advice_config=config.advice,
    )

    logger.info(
        f"[RiskAssessmentService] Ready (backend={backend.name}, "
        f"version={config.engine_version})"
    )

    return RiskAssessmentService(
        config=config,
        backend=backend,
        retry_policy=retry_policy,
        weights=weights,
        legacy_weights=legacy,
        store=store,
        calculator=calculator,
    )
