"""
Risk Assessment Core - Recommendation Matching.

============================================================
PURPOSE
============================================================
Pick one advice record for a total score.

Strategies run in order, first hit wins:
1. score_range            - min_score <= total <= max_score
2. exact_level            - effective level == calculated level
3. case_insensitive_level - same, ignoring case

The effective level is the normalized annotation when the
record has one, otherwise the raw admin text.

Records are scanned in the order given (min_score ascending
from the store), so with overlapping ranges the lowest
min_score wins. A gap falls through to the level strategies.

============================================================
"""

import logging
from typing import Callable, Optional, Sequence, Tuple

from .config import DEFAULT_NO_MATCH_ADVICE
from .types import AdviceMatch, AdviceRecord


logger = logging.getLogger(__name__)


MatchStrategy = Callable[[float, str, Sequence[AdviceRecord]], Optional[AdviceRecord]]


# ============================================================
# STRATEGIES
# ============================================================


def match_by_score_range(
    total_score: float,
    risk_level: str,
    advice: Sequence[AdviceRecord],
) -> Optional[AdviceRecord]:
    for record in advice:
        if record.covers(total_score):
            return record
    return None


def match_by_exact_level(
    total_score: float,
    risk_level: str,
    advice: Sequence[AdviceRecord],
) -> Optional[AdviceRecord]:
    for record in advice:
        if record.effective_risk_level == risk_level:
            return record
    return None


def match_by_case_insensitive_level(
    total_score: float,
    risk_level: str,
    advice: Sequence[AdviceRecord],
) -> Optional[AdviceRecord]:
    wanted = risk_level.lower()
    for record in advice:
        if record.effective_risk_level.lower() == wanted:
            return record
    return None


DEFAULT_STRATEGIES: Tuple[Tuple[str, MatchStrategy], ...] = (
    ("score_range", match_by_score_range),
    ("exact_level", match_by_exact_level),
    ("case_insensitive_level", match_by_case_insensitive_level),
)


# ============================================================
# RESOLVER
# ============================================================


class MatchResolver:
    """Runs the strategy list and builds the AdviceMatch."""

    def __init__(
        self,
        strategies: Sequence[Tuple[str, MatchStrategy]] = DEFAULT_STRATEGIES,
        no_match_text: str = DEFAULT_NO_MATCH_ADVICE,
    ) -> None:
        self._strategies = tuple(strategies)
        self._no_match_text = no_match_text

    @property
    def strategy_names(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self._strategies)

    def resolve(
        self,
        total_score: float,
        calculated_risk_level: str,
        advice: Sequence[AdviceRecord],
    ) -> AdviceMatch:
        """
        Args:
            total_score: Summed answer weights
            calculated_risk_level: Level derived from the score
            advice: Candidate records, min_score ascending

        Returns:
            AdviceMatch. When nothing matches, the no-match text with
            the calculated level and no record.
        """
        for name, strategy in self._strategies:
            record = strategy(total_score, calculated_risk_level, advice)
            if record is not None:
                logger.debug(
                    f"[MatchResolver] score={total_score} matched "
                    f"{record.effective_risk_level} via {name}"
                )
                return AdviceMatch(
                    advice_text=record.advice_text,
                    risk_level=record.effective_risk_level,
                    strategy=name,
                    record=record,
                )

        logger.warning(
            f"[MatchResolver] No advice for score={total_score} "
            f"level={calculated_risk_level} among {len(advice)} record(s)"
        )
        return AdviceMatch(
            advice_text=self._no_match_text,
            risk_level=calculated_risk_level,
        )

