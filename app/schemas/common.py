from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel


class ScoreCategory(str, Enum):
    demographic = "demographic"
    behavioral = "behavioral"
    engagement = "engagement"
    fit = "fit"


class ScoreLabel(str, Enum):
    cold = "cold"
    warm = "warm"
    hot = "hot"
    qualified = "qualified"


class RuleOperator(str, Enum):
    equals = "equals"
    not_equals = "not_equals"
    contains = "contains"
    not_contains = "not_contains"
    greater_than = "greater_than"
    less_than = "less_than"
    in_ = "in"
    not_in = "not_in"
    exists = "exists"
    not_exists = "not_exists"


class ConditionOperator(str, Enum):
    """Rule operators plus the null-check spellings used by workflow conditions."""

    equals = "equals"
    not_equals = "not_equals"
    contains = "contains"
    not_contains = "not_contains"
    greater_than = "greater_than"
    less_than = "less_than"
    in_ = "in"
    not_in = "not_in"
    exists = "exists"
    not_exists = "not_exists"
    is_null = "is_null"
    is_not_null = "is_not_null"


class SuccessResponse(BaseModel):
    """Generic success response base."""

    success: bool = True


class ErrorResponse(BaseModel):
    """Body returned by every exception handler."""

    detail: str
    type: str
    errors: Optional[List[Any]] = None
