"""
Risk Assessment Core - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for glaucoma risk scoring and recommendation
resolution.

This module defines the enums and dataclasses that flow
between the weight sources, the recommendation store, the
match resolver and the score calculator.

============================================================
DESIGN PRINCIPLES
============================================================
- All records are immutable (frozen dataclasses)
- Admin-entered risk levels stay free text on the record;
  the canonical form is carried alongside, never in place
- Results are transient and never persisted by the core

============================================================
RISK LEVELS
============================================================
Canonical tokens: Low, Moderate, High.
"Unknown" is reserved for results the calculator could not
classify. It is deliberately NOT a member of RiskLevel so it
can never be written through the admin boundary.

============================================================
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


# ============================================================
# CONSTANTS
# ============================================================


UNKNOWN_RISK_LEVEL = "Unknown"

# Answers keyed by question id, values are the selected option values.
AnswerSet = Mapping[str, str]


# ============================================================
# ENUMS
# ============================================================


class RiskLevel(str, Enum):
    """
    Closed set of risk levels accepted at the admin write boundary.

    Values are the display tokens stored in the advice table.
    """

    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"

    @classmethod
    def parse(cls, value: Any) -> "RiskLevel":
        """
        Parse an exact canonical token (case-insensitive).

        Raises:
            ValueError: If value is not one of Low/Moderate/High
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip().lower()
            for member in cls:
                if member.value.lower() == text:
                    return member
        raise ValueError(f"Unsupported risk level: {value!r}")

    @classmethod
    def from_min_score(cls, min_score: float) -> "RiskLevel":
        """Derive a level from the lower bound of an advice range."""
        if min_score <= 1:
            return cls.LOW
        if min_score <= 3:
            return cls.MODERATE
        return cls.HIGH


class ErrorCategory(str, Enum):
    """Store failure taxonomy used by the retry policy."""

    SERVER = "server"
    AUTH = "auth"
    NETWORK = "network"
    UNKNOWN = "unknown"


# ============================================================
# WEIGHT CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class ScoreConfigEntry:
    """An admin-assigned weight for one specific answer."""

    question_id: str
    option_value: str
    score: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_id": self.question_id,
            "option_value": self.option_value,
            "score": self.score,
        }


# ============================================================
# ADVICE RECORDS
# ============================================================


@dataclass(frozen=True)
class AdviceRecord:
    """
    One admin-authored recommendation.

    ============================================================
    FIELDS
    ============================================================
    - min_score / max_score: inclusive score range
    - risk_level: free text exactly as the admin entered it
    - advice_text: recommendation shown to the patient
    - normalized_risk_level: canonical annotation added on read,
      None for records that have not been through the normalizer

    Ranges across records may overlap or leave gaps.
    ============================================================
    """

    min_score: int
    max_score: int
    risk_level: str
    advice_text: str
    id: Optional[str] = None
    updated_at: Optional[datetime] = None
    normalized_risk_level: Optional[str] = None

    @property
    def effective_risk_level(self) -> str:
        """Normalized level when annotated, otherwise the raw label."""
        if self.normalized_risk_level:
            return self.normalized_risk_level
        return self.risk_level

    def covers(self, score: float) -> bool:
        """True if score falls inside the inclusive range."""
        return self.min_score <= score <= self.max_score

    def with_normalized_level(self, normalized: str) -> "AdviceRecord":
        return replace(self, normalized_risk_level=normalized)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "min_score": self.min_score,
            "max_score": self.max_score,
            "risk_level": self.risk_level,
            "normalized_risk_level": self.normalized_risk_level,
            "advice": self.advice_text,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


# ============================================================
# CALCULATION OUTPUT
# ============================================================


@dataclass(frozen=True)
class ContributingFactor:
    """One answer that added to the total score."""

    question_label: str
    answer_value: str
    score: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question_label,
            "answer": self.answer_value,
            "score": self.score,
        }


@dataclass(frozen=True)
class AdviceMatch:
    """Outcome of recommendation matching."""

    advice_text: str
    risk_level: str
    strategy: Optional[str] = None
    record: Optional[AdviceRecord] = None

    @property
    def matched(self) -> bool:
        return self.record is not None


@dataclass(frozen=True)
class RiskAssessmentResult:
    """
    Final output of a risk calculation.

    Always renderable: on internal failure the calculator returns
    a zero-score "Unknown" result instead of raising.
    """

    total_score: int
    risk_level: str
    advice_text: str
    contributing_factors: List[ContributingFactor] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_score": self.total_score,
            "risk_level": self.risk_level,
            "advice": self.advice_text,
            "contributing_factors": [f.to_dict() for f in self.contributing_factors],
        }
