"""CSV import/export schemas."""

from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.entity_fields import EntityType


class DuplicateHandling(str, Enum):
    skip = "skip"
    update = "update"
    create_new = "create_new"


class FilterOperator(str, Enum):
    eq = "eq"
    neq = "neq"
    gt = "gt"
    gte = "gte"
    lt = "lt"
    lte = "lte"
    like = "like"
    in_ = "in"


class FieldMappingSchema(BaseModel):
    source_field: str
    target_field: str
    transform: str = Field("trim", pattern=r"^(none|trim|lowercase|uppercase)$")
    score: int = 0


class ParsedRowOut(BaseModel):
    row_number: int
    data: Dict[str, str]
    errors: List[str]
    is_valid: bool


class ImportPreviewOut(BaseModel):
    headers: List[str]
    rows: List[ParsedRowOut]
    total_rows: int
    valid_rows: int
    error_rows: int
    duplicate_rows: int
    suggested_mappings: List[FieldMappingSchema]


class ImportRowErrorOut(BaseModel):
    row: int
    message: str


class ImportResultOut(BaseModel):
    job_id: Optional[UUID] = None
    total_rows: int
    processed_rows: int
    success_count: int
    failure_count: int
    duplicate_count: int
    errors: List[ImportRowErrorOut] = Field(default_factory=list)


class ExportFilter(BaseModel):
    field: str
    operator: FilterOperator = FilterOperator.eq
    value: Any = None


class ExportRequest(BaseModel):
    entity_type: EntityType
    fields: List[str] = Field(..., min_length=1)
    format: str = Field("csv", pattern=r"^csv$")
    filters: List[ExportFilter] = Field(default_factory=list)
    order_by: Optional[str] = None
    order_desc: bool = False
    limit: Optional[int] = Field(None, ge=1)
