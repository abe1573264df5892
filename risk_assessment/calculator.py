"""
Risk Assessment Core - Score Calculator.

============================================================
PURPOSE
============================================================
Turn a patient's answers into a RiskAssessmentResult.

Pipeline:
1. Snapshot each weight source once, then weigh every
   non-empty answer (first source wins)
2. Sum weights and record one contributing factor per hit
3. Classify the total (Low / Moderate / High)
4. Load fresh advice and resolve one recommendation

============================================================
FAILURE MODE
============================================================
calculate() never raises. Any unexpected error is logged
with its traceback and a zero-score "Unknown" result is
returned so the caller can always render something.

============================================================
"""

import logging
from typing import List, Optional, Sequence, Tuple

from .config import AdviceConfig, ScoringConfig
from .labels import QuestionLabelResolver
from .matching import MatchResolver
from .store import RecommendationStore
from .types import (
    UNKNOWN_RISK_LEVEL,
    AnswerSet,
    ContributingFactor,
    RiskAssessmentResult,
    RiskLevel,
)
from .weights import LegacyWeightTable, WeightSource


logger = logging.getLogger(__name__)


class ScoreCalculator:
    """
    Main scoring engine.

    Usage:
        calculator = ScoreCalculator(store, [config_store, LegacyWeightTable()])
        result = await calculator.calculate({"familyGlaucoma": "yes"})
    """

    def __init__(
        self,
        store: RecommendationStore,
        weight_sources: Sequence[WeightSource],
        resolver: Optional[MatchResolver] = None,
        label_resolver: Optional[QuestionLabelResolver] = None,
        scoring_config: Optional[ScoringConfig] = None,
        advice_config: Optional[AdviceConfig] = None,
    ) -> None:
        advice_config = advice_config or AdviceConfig()

        self._store = store
        self._sources: Tuple[WeightSource, ...] = tuple(weight_sources)
        self._resolver = resolver or MatchResolver(no_match_text=advice_config.no_match_text)
        self._labels = label_resolver or QuestionLabelResolver(legacy=self._find_legacy())
        self._scoring = scoring_config or ScoringConfig()
        self._error_text = advice_config.calculation_error_text

    def _find_legacy(self) -> Optional[LegacyWeightTable]:
        for source in self._sources:
            if isinstance(source, LegacyWeightTable):
                return source
        return None

    # --------------------------------------------------------
    # PUBLIC API
    # --------------------------------------------------------

    async def calculate(self, answers: AnswerSet) -> RiskAssessmentResult:
        try:
            return await self._calculate(answers)
        except Exception as e:
            logger.error(f"[ScoreCalculator] Risk calculation failed: {e}", exc_info=True)
            return self.error_result()

    def classify_score(self, total_score: float) -> RiskLevel:
        return self._scoring.classify(total_score)

    def error_result(self) -> RiskAssessmentResult:
        return RiskAssessmentResult(
            total_score=0,
            risk_level=UNKNOWN_RISK_LEVEL,
            advice_text=self._error_text,
            contributing_factors=[],
        )

    # --------------------------------------------------------
    # INTERNALS
    # --------------------------------------------------------

    async def _calculate(self, answers: AnswerSet) -> RiskAssessmentResult:
        sources = [await source.snapshot() for source in self._sources]
        total_score = 0
        factors: List[ContributingFactor] = []

        for question_id, option_value in answers.items():
            if option_value is None or option_value == "":
                continue

            value = str(option_value)
            score = await self._weigh(sources, question_id, value)
            if score is None:
                continue

            total_score += score
            factors.append(
                ContributingFactor(
                    question_label=self._labels.label_for(question_id),
                    answer_value=value,
                    score=score,
                )
            )

        risk_level = self.classify_score(total_score)
        logger.info(
            f"[ScoreCalculator] total={total_score} level={risk_level.value} "
            f"factors={len(factors)}"
        )

        advice = await self._store.get_advice()
        match = self._resolver.resolve(total_score, risk_level.value, advice)

        return RiskAssessmentResult(
            total_score=total_score,
            risk_level=match.risk_level,
            advice_text=match.advice_text,
            contributing_factors=factors,
        )

    async def _weigh(
        self,
        sources: Sequence[WeightSource],
        question_id: str,
        option_value: str,
    ) -> Optional[int]:
        for source in sources:
            score = await source.lookup(question_id, option_value)
            if score is not None:
                logger.debug(
                    f"[ScoreCalculator] {question_id}={option_value} -> {score} "
                    f"({source.name})"
                )
                return score
        return None
