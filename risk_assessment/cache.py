"""
Risk Assessment Core - Advice Cache.

A single-slot holder for the most recently fetched, normalized
advice list. Owned by a RecommendationStore instance.

Invariants:
- Only successful fetches are stored
- Fallback advice is never stored
- Every write to the advice table invalidates before the next read
"""

import logging
from typing import List, Optional, Sequence

from .types import AdviceRecord


logger = logging.getLogger(__name__)


class AdviceCache:
    """Single-slot advice cache."""

    def __init__(self) -> None:
        self._records: Optional[List[AdviceRecord]] = None

    def get(self) -> Optional[List[AdviceRecord]]:
        """Copy of the cached list, or None when empty."""
        if self._records is None:
            return None
        return list(self._records)

    def set(self, records: Sequence[AdviceRecord]) -> None:
        self._records = list(records)
        logger.debug(f"[AdviceCache] Stored {len(self._records)} advice record(s)")

    def invalidate(self) -> None:
        if self._records is not None:
            logger.debug("[AdviceCache] Invalidated")
        self._records = None

    @property
    def is_populated(self) -> bool:
        return self._records is not None
