"""
Risk Assessment Core - Persistence Models.

============================================================
MODELS
============================================================
1. RiskAssessmentAdvice: admin-authored advice per risk level
   (unique on risk_level, the upsert key)
2. RiskAssessmentConfigEntry: admin-assigned weight for one
   (question_id, option_value) answer

============================================================
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from database.engine import Base

from .types import AdviceRecord, ScoreConfigEntry


def _new_id() -> str:
    return str(uuid4())


# ============================================================
# ADVICE MODEL
# ============================================================


class RiskAssessmentAdvice(Base):
    """One recommendation row, keyed for upserts by risk_level."""

    __tablename__ = "risk_assessment_advice"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)

    min_score: Mapped[int] = mapped_column(Integer, nullable=False)
    max_score: Mapped[int] = mapped_column(Integer, nullable=False)

    risk_level: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        comment="Free text entered by an admin",
    )

    advice: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        server_default=func.now(),
        onupdate=func.now(),
    )

    def to_record(self) -> AdviceRecord:
        return AdviceRecord(
            id=self.id,
            min_score=self.min_score,
            max_score=self.max_score,
            risk_level=self.risk_level,
            advice_text=self.advice or "",
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return (
            f"<RiskAssessmentAdvice(risk_level={self.risk_level!r}, "
            f"range={self.min_score}-{self.max_score})>"
        )


# ============================================================
# WEIGHT MODEL
# ============================================================


class RiskAssessmentConfigEntry(Base):
    """Weight for one answer to one question."""

    __tablename__ = "risk_assessment_config"
    __table_args__ = (
        UniqueConstraint("question_id", "option_value", name="uq_risk_config_answer"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    question_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    option_value: Mapped[str] = mapped_column(String(128), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def to_entry(self) -> ScoreConfigEntry:
        return ScoreConfigEntry(
            question_id=self.question_id,
            option_value=self.option_value,
            score=self.score,
        )
