"""
Risk Assessment Core - Weight Sources.

============================================================
PURPOSE
============================================================
Answer weights come from an ordered list of sources. The
calculator takes one snapshot of each source per calculation,
asks the snapshots in turn and takes the first hit. The
configured table is read once per calculation, not per answer.

Default order:
1. ScoreConfigStore  - admin-maintained weight table
2. LegacyWeightTable - hardcoded weights kept for answers
                       that were never configured

A legacy weight never overrides a configured one.

============================================================
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .backend import AdviceBackend
from .errors import StoreError
from .retry import RetryPolicy
from .types import ScoreConfigEntry


logger = logging.getLogger(__name__)


class WeightSource(ABC):
    """Anything that can weigh one answer."""

    name: str = "weights"

    @abstractmethod
    async def lookup(self, question_id: str, option_value: str) -> Optional[int]:
        """Score for the answer, or None when this source has no entry."""

    async def snapshot(self) -> "WeightSource":
        """Source to consult for one calculation; static sources are their own."""
        return self


# ============================================================
# CONFIGURED WEIGHTS
# ============================================================


class ScoreConfigStore(WeightSource):
    """
    Read-only view of the admin weight table.

    Store failures are logged and reported as "no entry" so a
    flaky store degrades scoring instead of breaking it.
    """

    name = "config"

    def __init__(
        self,
        backend: AdviceBackend,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self._backend = backend
        self._retry = retry_policy or RetryPolicy(
            refresh_credentials=backend.refresh_credentials
        )

    async def lookup(self, question_id: str, option_value: str) -> Optional[int]:
        try:
            return await self._retry.execute(
                lambda: self._backend.get_weight(question_id, option_value),
                name="get_weight",
            )
        except StoreError as e:
            logger.error(
                f"[ScoreConfigStore] Weight lookup failed for "
                f"{question_id}={option_value}: {e}"
            )
            return None

    async def list_entries(self) -> List[ScoreConfigEntry]:
        """All configured weights, empty when the store is unavailable."""
        try:
            return await self._retry.execute(self._backend.list_weights, name="list_weights")
        except StoreError as e:
            logger.error(f"[ScoreConfigStore] Listing weights failed: {e}")
            return []

    async def snapshot(self) -> "WeightSnapshot":
        """Load the whole table once; an unavailable store yields an empty snapshot."""
        entries = await self.list_entries()
        logger.debug(f"[ScoreConfigStore] Loaded {len(entries)} weight(s) for scoring")
        return WeightSnapshot(entries)


class WeightSnapshot(WeightSource):
    """Configured weights frozen for a single calculation."""

    name = "config"

    def __init__(self, entries: Sequence[ScoreConfigEntry]) -> None:
        self._index: Dict[Tuple[str, str], int] = {}
        for entry in entries:
            self._index.setdefault((entry.question_id, entry.option_value.lower()), entry.score)

    async def lookup(self, question_id: str, option_value: str) -> Optional[int]:
        return self._index.get((question_id, option_value.lower()))


# ============================================================
# LEGACY WEIGHTS
# ============================================================


@dataclass(frozen=True)
class LegacyWeight:
    question_id: str
    option_value: str
    score: int
    label: str


LEGACY_WEIGHTS: Tuple[LegacyWeight, ...] = (
    LegacyWeight("familyGlaucoma", "yes", 2, "Family History of Glaucoma"),
    LegacyWeight("ocularSteroid", "yes", 2, "Ophthalmic Topical Steroids"),
    LegacyWeight("intravitreal", "yes", 2, "Intravitreal Steroids"),
    LegacyWeight("systemicSteroid", "yes", 2, "Systemic Steroids"),
    LegacyWeight("iopBaseline", "22_and_above", 2, "IOP Baseline"),
    LegacyWeight("verticalAsymmetry", "0.2_and_above", 2, "Vertical Asymmetry"),
    LegacyWeight("verticalRatio", "0.6_and_above", 2, "Vertical Ratio"),
    LegacyWeight("race", "black", 2, "Race"),
    LegacyWeight("race", "hispanic", 1, "Race"),
)


class LegacyWeightTable(WeightSource):
    """Hardcoded weights from before the weight table existed."""

    name = "legacy"

    def __init__(self, weights: Sequence[LegacyWeight] = LEGACY_WEIGHTS) -> None:
        self._weights = tuple(weights)
        self._index: Dict[Tuple[str, str], int] = {}
        self._labels: Dict[str, str] = {}
        for weight in self._weights:
            # First declaration wins.
            self._index.setdefault((weight.question_id, weight.option_value.lower()), weight.score)
            self._labels.setdefault(weight.question_id, weight.label)

    async def lookup(self, question_id: str, option_value: str) -> Optional[int]:
        return self.get(question_id, option_value)

    def get(self, question_id: str, option_value: str) -> Optional[int]:
        return self._index.get((question_id, option_value.lower()))

    def label_for(self, question_id: str) -> Optional[str]:
        return self._labels.get(question_id)

    def question_ids(self) -> Tuple[str, ...]:
        """Legacy question ids in declaration order."""
        return tuple(self._labels)
