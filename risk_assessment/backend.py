"""
Risk Assessment Core - Persistent Store Boundary.

============================================================
PURPOSE
============================================================
Abstract interface every storage backend implements, plus an
in-memory backend used for local runs and tests.

All backends MUST:
- Return advice ordered by min_score ascending
- Upsert advice keyed by risk_level
- Raise StoreError (or let transport errors propagate) on
  failure; retrying and fallback happen above this layer

============================================================
IMPLEMENTATIONS
============================================================
- RiskAssessmentRepository   (repository.py, SQL tables)
- StoredProcedureRepository  (repository.py, SQL procedures)
- RestAdviceBackend          (rest_backend.py, HTTP API)
- InMemoryAdviceBackend      (this module)

============================================================
"""

import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Mapping, Optional, Sequence, Tuple
from uuid import uuid4

from .types import AdviceRecord, ScoreConfigEntry


logger = logging.getLogger(__name__)


class AdviceBackend(ABC):
    """
    Abstract base class for advice/weight persistence.

    Implementations perform a single attempt per call.
    """

    name: str = "backend"

    @abstractmethod
    async def fetch_advice(self) -> List[AdviceRecord]:
        """All advice records ordered by min_score ascending."""

    @abstractmethod
    async def upsert_advice(self, record: AdviceRecord) -> Optional[AdviceRecord]:
        """
        Insert or overwrite the record with the same risk_level.

        Returns:
            The persisted record, or None if the store returned nothing
        """

    @abstractmethod
    async def get_weight(self, question_id: str, option_value: str) -> Optional[int]:
        """Weight for one answer, None when not configured."""

    @abstractmethod
    async def list_weights(self) -> List[ScoreConfigEntry]:
        """All configured weights."""

    @abstractmethod
    async def relabel_advice(self, old_risk_level: str, new_risk_level: str) -> bool:
        """
        Rename the risk_level key of an existing record.

        Used only by legacy-data migration.

        Returns:
            True if a record was updated
        """

    async def refresh_credentials(self) -> None:
        """Refresh the store credential. No-op unless overridden."""
        return None

    async def close(self) -> None:
        return None


# ============================================================
# ROW MAPPING
# ============================================================


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Unparseable timestamp: {value!r}")
    return None


def advice_from_row(row: Mapping[str, Any]) -> AdviceRecord:
    """Build an AdviceRecord from a table/procedure/HTTP row."""
    record_id = row.get("id")
    return AdviceRecord(
        id=str(record_id) if record_id is not None else None,
        min_score=int(row.get("min_score") or 0),
        max_score=int(row.get("max_score") or 0),
        risk_level=row.get("risk_level") or "",
        advice_text=row.get("advice") or "",
        updated_at=_parse_timestamp(row.get("updated_at")),
    )


def advice_to_row(record: AdviceRecord) -> Dict[str, Any]:
    """Column values for an upsert keyed by risk_level; never carries the id."""
    row: Dict[str, Any] = {
        "min_score": record.min_score,
        "max_score": record.max_score,
        "risk_level": record.risk_level,
        "advice": record.advice_text,
        "updated_at": (record.updated_at or datetime.now(timezone.utc)).isoformat(),
    }
    return row


# ============================================================
# IN-MEMORY BACKEND
# ============================================================


class InMemoryAdviceBackend(AdviceBackend):
    """
    Dict-backed backend with failure injection.

    fail_next(error, times) makes the next N calls (of any
    operation) raise the given exception.
    """

    name = "memory"

    def __init__(
        self,
        advice: Optional[Sequence[AdviceRecord]] = None,
        weights: Optional[Sequence[ScoreConfigEntry]] = None,
    ) -> None:
        self._advice: Dict[str, AdviceRecord] = {}
        self._weights: Dict[Tuple[str, str], ScoreConfigEntry] = {}
        self._failures: Deque[BaseException] = deque()
        self.calls: List[str] = []
        self.credential_refreshes = 0

        for record in advice or []:
            self._advice[record.risk_level] = record if record.id else replace(record, id=uuid4().hex)
        for entry in weights or []:
            self._weights[(entry.question_id, entry.option_value.lower())] = entry

    def fail_next(self, error: BaseException, times: int = 1) -> None:
        for _ in range(times):
            self._failures.append(error)

    def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if self._failures:
            raise self._failures.popleft()

    async def fetch_advice(self) -> List[AdviceRecord]:
        self._enter("fetch_advice")
        return sorted(self._advice.values(), key=lambda r: r.min_score)

    async def upsert_advice(self, record: AdviceRecord) -> Optional[AdviceRecord]:
        self._enter("upsert_advice")
        existing = self._advice.get(record.risk_level)
        # Keyed by risk_level only; an incoming id never selects the row.
        record_id = existing.id if existing else uuid4().hex
        stored = replace(
            record,
            id=record_id,
            updated_at=datetime.now(timezone.utc),
            normalized_risk_level=None,
        )
        self._advice[record.risk_level] = stored
        return stored

    async def get_weight(self, question_id: str, option_value: str) -> Optional[int]:
        self._enter("get_weight")
        entry = self._weights.get((question_id, option_value.lower()))
        return entry.score if entry else None

    async def list_weights(self) -> List[ScoreConfigEntry]:
        self._enter("list_weights")
        return list(self._weights.values())

    async def relabel_advice(self, old_risk_level: str, new_risk_level: str) -> bool:
        self._enter("relabel_advice")
        record = self._advice.pop(old_risk_level, None)
        if record is None:
            return False
        self._advice[new_risk_level] = replace(
            record,
            risk_level=new_risk_level,
            updated_at=datetime.now(timezone.utc),
        )
        return True

    async def refresh_credentials(self) -> None:
        self.credential_refreshes += 1
