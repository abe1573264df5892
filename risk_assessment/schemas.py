"""
Pydantic Schemas for Admin Advice Edits.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .types import RiskLevel


class AdviceUpdate(BaseModel):
    """
    Partial advice edit submitted by an admin.

    Either risk_level or both score bounds must be present, since
    risk_level is the upsert key and can be derived from min_score.
    """

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    risk_level: Optional[RiskLevel] = None
    min_score: Optional[int] = Field(default=None, ge=0)
    max_score: Optional[int] = Field(default=None, ge=0)
    advice: Optional[str] = None

    @field_validator("risk_level", mode="before")
    @classmethod
    def parse_risk_level(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        return RiskLevel.parse(value)

    @model_validator(mode="after")
    def check_key(self) -> "AdviceUpdate":
        if self.risk_level is None and (self.min_score is None or self.max_score is None):
            raise ValueError("risk_level or both min_score and max_score are required")
        if (
            self.min_score is not None
            and self.max_score is not None
            and self.min_score > self.max_score
        ):
            raise ValueError("min_score must not exceed max_score")
        return self
