"""Workflow definition and execution schemas."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.entity_fields import EntityType
from app.schemas.common import ConditionOperator


class TriggerType(str, Enum):
    record_created = "record_created"
    record_updated = "record_updated"
    field_changed = "field_changed"
    stage_changed = "stage_changed"
    date_based = "date_based"
    manual = "manual"
    webhook = "webhook"


class ActionType(str, Enum):
    create_task = "create_task"
    send_email = "send_email"
    update_field = "update_field"
    assign_owner = "assign_owner"
    send_notification = "send_notification"
    webhook_call = "webhook_call"
    create_record = "create_record"


class LogicalOperator(str, Enum):
    AND = "AND"
    OR = "OR"


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class WorkflowConditionIn(BaseModel):
    condition_group: int = Field(0, ge=0)
    field_name: str = Field(..., min_length=1)
    operator: ConditionOperator
    field_value: Optional[str] = None
    field_values: Optional[List[str]] = None
    logical_operator: LogicalOperator = LogicalOperator.AND
    position: int = Field(0, ge=0)


class WorkflowActionIn(BaseModel):
    action_type: ActionType
    action_config: Dict[str, Any] = Field(default_factory=dict)
    position: int = Field(0, ge=0)
    delay_minutes: int = Field(0, ge=0)
    stop_on_error: bool = False


class WorkflowCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    trigger_type: TriggerType
    trigger_config: Dict[str, Any] = Field(default_factory=dict)
    entity_type: EntityType
    is_active: bool = True
    run_once_per_record: bool = False
    position: int = 0
    conditions: List[WorkflowConditionIn] = Field(default_factory=list)
    actions: List[WorkflowActionIn] = Field(default_factory=list)


class WorkflowUpdate(BaseModel):
    """Partial update.  ``conditions``/``actions``, when given, replace the existing lists."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    trigger_type: Optional[TriggerType] = None
    trigger_config: Optional[Dict[str, Any]] = None
    entity_type: Optional[EntityType] = None
    is_active: Optional[bool] = None
    run_once_per_record: Optional[bool] = None
    position: Optional[int] = None
    conditions: Optional[List[WorkflowConditionIn]] = None
    actions: Optional[List[WorkflowActionIn]] = None


class WorkflowToggle(BaseModel):
    is_active: bool


class WorkflowDuplicate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)


class WorkflowRunRequest(BaseModel):
    """Manual trigger for one record."""

    entity_id: UUID
    trigger_data: Optional[Dict[str, Any]] = None


class WorkflowTriggerRequest(BaseModel):
    """Record event fanned out to every matching active workflow."""

    entity_type: EntityType
    entity_id: UUID
    trigger_event: TriggerType
    trigger_data: Optional[Dict[str, Any]] = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class WorkflowConditionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    condition_group: int
    field_name: str
    operator: str
    field_value: Optional[str] = None
    field_values: Optional[List[str]] = None
    logical_operator: str
    position: int


class WorkflowActionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    action_type: str
    action_config: Dict[str, Any]
    position: int
    delay_minutes: int
    stop_on_error: bool


class WorkflowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    trigger_type: str
    trigger_config: Dict[str, Any]
    entity_type: str
    is_active: bool
    run_once_per_record: bool
    position: int
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    conditions: List[WorkflowConditionOut] = Field(default_factory=list)
    actions: List[WorkflowActionOut] = Field(default_factory=list)


class ActionLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    action_id: Optional[UUID] = None
    action_type: str
    status: str
    input_data: Optional[Dict[str, Any]] = None
    output_data: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class ExecutionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    workflow_id: UUID
    entity_type: str
    entity_id: UUID
    trigger_event: str
    status: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None


class ExecutionDetailOut(ExecutionOut):
    trigger_data: Optional[Dict[str, Any]] = None
    action_logs: List[ActionLogOut] = Field(default_factory=list)


class ExecutionStats(BaseModel):
    total: int
    completed: int
    failed: int
    running: int


class WorkflowRunResponse(BaseModel):
    """``executed`` is false when conditions did not match or the record already ran."""

    executed: bool
    execution: Optional[ExecutionOut] = None
