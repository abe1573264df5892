"""
Risk Assessment Core - Package.

============================================================
PURPOSE
============================================================
Glaucoma risk scoring: questionnaire answers in, a total
score, a risk level and one admin-authored recommendation
out.

============================================================
SCORING
============================================================
Each answer is weighted by the admin weight table, falling
back to a fixed legacy table. Weights are summed:

- Low      (0-2)
- Moderate (3-5)
- High     (6+)

Recommendations come from the advice table, matched first by
score range, then by risk level. Admin risk levels are free
text and are normalized on read.

============================================================
USAGE
============================================================
    from risk_assessment import build_service, load_config_from_env

    service = build_service(load_config_from_env())

    result = await service.calculator.calculate({
        "familyGlaucoma": "yes",
        "race": "hispanic",
    })
    print(f"{result.risk_level}: {result.advice_text}")

    await service.store.update_advice({
        "risk_level": "High",
        "min_score": 6,
        "max_score": 100,
        "advice": "Refer to a glaucoma specialist.",
    })

    await service.close()

============================================================
"""

# Types
from .types import (
    UNKNOWN_RISK_LEVEL,
    AnswerSet,
    RiskLevel,
    ErrorCategory,
    ScoreConfigEntry,
    AdviceRecord,
    ContributingFactor,
    AdviceMatch,
    RiskAssessmentResult,
)

# Errors
from .errors import (
    RiskAssessmentError,
    StoreError,
    RetryExhaustedError,
    AdviceValidationError,
    classify_error,
)

# Configuration
from .config import (
    RetryConfig,
    ScoringConfig,
    AdviceConfig,
    StoreConfig,
    RiskAssessmentConfig,
    FALLBACK_ADVICE,
    get_default_config,
    load_config_from_env,
)

# Components
from .normalizer import RiskLevelNormalizer, normalize_risk_level
from .cache import AdviceCache
from .retry import RetryPolicy, execute_with_retry
from .weights import (
    WeightSource,
    ScoreConfigStore,
    WeightSnapshot,
    LegacyWeight,
    LegacyWeightTable,
    LEGACY_WEIGHTS,
)
from .labels import QuestionLabelResolver
from .matching import (
    MatchResolver,
    DEFAULT_STRATEGIES,
    match_by_score_range,
    match_by_exact_level,
    match_by_case_insensitive_level,
)
from .schemas import AdviceUpdate
from .store import RecommendationStore
from .calculator import ScoreCalculator
from .notifications import (
    FailureNotifier,
    LoggingNotifier,
    CollectingNotifier,
    NoticeRateLimiter,
)

# Persistence
from .backend import AdviceBackend, InMemoryAdviceBackend
from .repository import RiskAssessmentRepository, StoredProcedureRepository
from .rest_backend import RestAdviceBackend
from .migration import (
    MigrationReport,
    normalize_stored_risk_levels,
    derive_risk_level_from_range,
)

# Wiring
from .service import (
    RiskAssessmentService,
    build_service,
    create_backend,
    setup_logging,
)


__version__ = "1.0.0"


__all__ = [
    "__version__",

    # Types
    "UNKNOWN_RISK_LEVEL",
    "AnswerSet",
    "RiskLevel",
    "ErrorCategory",
    "ScoreConfigEntry",
    "AdviceRecord",
    "ContributingFactor",
    "AdviceMatch",
    "RiskAssessmentResult",

    # Errors
    "RiskAssessmentError",
    "StoreError",
    "RetryExhaustedError",
    "AdviceValidationError",
    "classify_error",

    # Configuration
    "RetryConfig",
    "ScoringConfig",
    "AdviceConfig",
    "StoreConfig",
    "RiskAssessmentConfig",
    "FALLBACK_ADVICE",
    "get_default_config",
    "load_config_from_env",

    # Components
    "RiskLevelNormalizer",
    "normalize_risk_level",
    "AdviceCache",
    "RetryPolicy",
    "execute_with_retry",
    "WeightSource",
    "ScoreConfigStore",
    "WeightSnapshot",
    "LegacyWeight",
    "LegacyWeightTable",
    "LEGACY_WEIGHTS",
    "QuestionLabelResolver",
    "MatchResolver",
    "DEFAULT_STRATEGIES",
    "match_by_score_range",
    "match_by_exact_level",
    "match_by_case_insensitive_level",
    "AdviceUpdate",
    "RecommendationStore",
    "ScoreCalculator",
    "FailureNotifier",
    "LoggingNotifier",
    "CollectingNotifier",
    "NoticeRateLimiter",

    # Persistence
    "AdviceBackend",
    "InMemoryAdviceBackend",
    "RiskAssessmentRepository",
    "StoredProcedureRepository",
    "RestAdviceBackend",
    "MigrationReport",
    "normalize_stored_risk_levels",
    "derive_risk_level_from_range",

    # Wiring
    "RiskAssessmentService",
    "build_service",
    "create_backend",
    "setup_logging",
]
