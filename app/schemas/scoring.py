"""Lead scoring request/response schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing_extensions import Self

from app.core.entity_fields import LeadField
from app.schemas.common import RuleOperator, ScoreCategory, ScoreLabel


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


class ScoringRuleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: ScoreCategory
    field_name: LeadField
    operator: RuleOperator
    field_value: Optional[str] = None
    field_values: Optional[List[str]] = None
    points: int = Field(..., ge=-100, le=100)
    is_active: bool = True
    priority: int = 0

    @model_validator(mode="after")
    def validate_operand(self) -> Self:
        """``in``/``not_in`` need a list, the other comparisons need a value."""
        if self.operator in (RuleOperator.in_, RuleOperator.not_in):
            if not self.field_values and not self.field_value:
                raise ValueError(f"Operator '{self.operator.value}' requires field_values")
        elif self.operator not in (RuleOperator.exists, RuleOperator.not_exists):
            if self.field_value is None:
                raise ValueError(f"Operator '{self.operator.value}' requires field_value")
        return self


class ScoringRuleCreate(ScoringRuleBase):
    pass


class ScoringRuleUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[ScoreCategory] = None
    field_name: Optional[LeadField] = None
    operator: Optional[RuleOperator] = None
    field_value: Optional[str] = None
    field_values: Optional[List[str]] = None
    points: Optional[int] = Field(None, ge=-100, le=100)
    is_active: Optional[bool] = None
    priority: Optional[int] = None


class ScoringRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    category: str
    field_name: str
    operator: str
    field_value: Optional[str] = None
    field_values: Optional[List[str]] = None
    points: int
    is_active: bool
    priority: int


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class ScoringSettings(BaseModel):
    cold_threshold: int = Field(0, ge=0, le=100)
    warm_threshold: int = Field(25, ge=0, le=100)
    hot_threshold: int = Field(50, ge=0, le=100)
    qualified_threshold: int = Field(75, ge=0, le=100)
    auto_convert_enabled: bool = False
    auto_convert_threshold: int = Field(80, ge=0, le=100)
    score_decay_enabled: bool = True
    score_decay_days: int = Field(30, ge=1)
    score_decay_percentage: int = Field(10, ge=0, le=100)
    qualification_framework: str = Field("bant", pattern=r"^(bant|meddic|custom)$")
    qualification_criteria: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def validate_threshold_order(self) -> Self:
        if not (
            self.cold_threshold
            <= self.warm_threshold
            <= self.hot_threshold
            <= self.qualified_threshold
        ):
            raise ValueError("Thresholds must be ordered cold <= warm <= hot <= qualified")
        return self


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------


class LeadScoreOut(BaseModel):
    lead_id: Optional[UUID] = None
    score: int = Field(..., ge=0, le=100)
    label: ScoreLabel
    breakdown: Dict[str, int]
    matched_rules: List[Dict[str, Any]] = Field(default_factory=list)


class CalculateScoreRequest(BaseModel):
    """Ad-hoc lead record to score without persisting."""

    lead: Dict[str, Any]

    @field_validator("lead")
    @classmethod
    def validate_lead_fields(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        allowed = {f.value for f in LeadField}
        unknown = sorted(set(value) - allowed)
        if unknown:
            raise ValueError(f"Unknown lead fields: {', '.join(unknown)}")
        return value


class RecalculateResponse(BaseModel):
    updated: int
    errors: List[str] = Field(default_factory=list)


class ScoreHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lead_id: UUID
    previous_score: Optional[int] = None
    new_score: int
    change_reason: Optional[str] = None
    triggered_by: Optional[str] = None
    created_at: Optional[datetime] = None
