from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.core.entity_fields import EntityType
from app.core.exceptions import RecordNotFoundError
from app.repositories.record_repository import RecordRepository
from app.schemas.workflow import (
    ExecutionDetailOut,
    ExecutionOut,
    ExecutionStats,
    WorkflowCreate,
    WorkflowDuplicate,
    WorkflowOut,
    WorkflowRunRequest,
    WorkflowRunResponse,
    WorkflowToggle,
    WorkflowTriggerRequest,
    WorkflowUpdate,
)
from app.services.workflow_engine import ExecutionContext, WorkflowEngine
from app.services.workflow_service import WorkflowService
from app.api.deps import (
    get_record_repo,
    get_tenant_id,
    get_user_id,
    get_workflow_engine,
    get_workflow_service,
)

router = APIRouter(prefix="/workflows", tags=["Workflows"])


# --- Executions ---


@router.get("/executions", response_model=List[ExecutionOut])
async def list_executions(
    workflow_id: Optional[UUID] = Query(None),
    limit: int = Query(50, ge=1, le=500, description="Max rows to return"),
    service: WorkflowService = Depends(get_workflow_service),
) -> List[ExecutionOut]:
    """Most recent executions first, optionally for one workflow."""
    return await service.get_executions(workflow_id, limit)


@router.get("/executions/stats", response_model=ExecutionStats)
async def execution_stats(
    workflow_id: Optional[UUID] = Query(None),
    service: WorkflowService = Depends(get_workflow_service),
) -> ExecutionStats:
    return ExecutionStats(**await service.get_execution_stats(workflow_id))


@router.get("/executions/{execution_id}", response_model=ExecutionDetailOut)
async def get_execution(
    execution_id: UUID,
    service: WorkflowService = Depends(get_workflow_service),
) -> ExecutionDetailOut:
    return await service.get_execution_details(execution_id)


@router.post("/trigger", response_model=List[ExecutionOut])
async def trigger_workflows(
    body: WorkflowTriggerRequest,
    tenant_id: UUID = Depends(get_tenant_id),
    user_id: Optional[UUID] = Depends(get_user_id),
    engine: WorkflowEngine = Depends(get_workflow_engine),
    record_repo: RecordRepository = Depends(get_record_repo),
) -> List[ExecutionOut]:
    """Run every active workflow listening for this record event."""
    record = await record_repo.get_as_dict(body.entity_type, body.entity_id)
    if record is None:
        raise RecordNotFoundError(f"{body.entity_type.value} {body.entity_id} not found")
    context = ExecutionContext(
        tenant_id=tenant_id,
        record=record,
        entity_type=body.entity_type.value,
        entity_id=body.entity_id,
        trigger_event=body.trigger_event.value,
        user_id=user_id,
        trigger_data=body.trigger_data,
    )
    return await engine.trigger_workflows(context)


# --- Definitions ---


@router.get("", response_model=List[WorkflowOut])
async def list_workflows(
    entity_type: Optional[EntityType] = Query(None),
    service: WorkflowService = Depends(get_workflow_service),
) -> List[WorkflowOut]:
    return await service.list_workflows(entity_type.value if entity_type else None)


@router.post("", response_model=WorkflowOut, status_code=201)
async def create_workflow(
    body: WorkflowCreate,
    service: WorkflowService = Depends(get_workflow_service),
) -> WorkflowOut:
    """Create a workflow with its conditions and actions in one transaction."""
    data = body.model_dump(mode="json")
    conditions = data.pop("conditions")
    actions = data.pop("actions")
    return await service.create_workflow(data, conditions, actions)


@router.get("/{workflow_id}", response_model=WorkflowOut)
async def get_workflow(
    workflow_id: UUID,
    service: WorkflowService = Depends(get_workflow_service),
) -> WorkflowOut:
    return await service.get_workflow(workflow_id)


@router.patch("/{workflow_id}", response_model=WorkflowOut)
async def update_workflow(
    workflow_id: UUID,
    body: WorkflowUpdate,
    service: WorkflowService = Depends(get_workflow_service),
) -> WorkflowOut:
    data = body.model_dump(mode="json", exclude_unset=True)
    conditions = data.pop("conditions", None)
    actions = data.pop("actions", None)
    return await service.update_workflow(workflow_id, data, conditions, actions)


@router.delete("/{workflow_id}", status_code=204)
async def delete_workflow(
    workflow_id: UUID,
    service: WorkflowService = Depends(get_workflow_service),
) -> None:
    await service.delete_workflow(workflow_id)


@router.post("/{workflow_id}/toggle", response_model=WorkflowOut)
async def toggle_workflow(
    workflow_id: UUID,
    body: WorkflowToggle,
    service: WorkflowService = Depends(get_workflow_service),
) -> WorkflowOut:
    return await service.toggle_workflow_active(workflow_id, body.is_active)


@router.post("/{workflow_id}/duplicate", response_model=WorkflowOut, status_code=201)
async def duplicate_workflow(
    workflow_id: UUID,
    body: Optional[WorkflowDuplicate] = None,
    service: WorkflowService = Depends(get_workflow_service),
) -> WorkflowOut:
    return await service.duplicate_workflow(workflow_id, body.name if body else None)


@router.post("/{workflow_id}/run", response_model=WorkflowRunResponse)
async def run_workflow(
    workflow_id: UUID,
    body: WorkflowRunRequest,
    tenant_id: UUID = Depends(get_tenant_id),
    user_id: Optional[UUID] = Depends(get_user_id),
    service: WorkflowService = Depends(get_workflow_service),
    engine: WorkflowEngine = Depends(get_workflow_engine),
    record_repo: RecordRepository = Depends(get_record_repo),
) -> WorkflowRunResponse:
    """Run one workflow manually against a record."""
    workflow = await service.get_workflow(workflow_id)
    record = await record_repo.get_as_dict(workflow.entity_type, body.entity_id)
    if record is None:
        raise RecordNotFoundError(f"{workflow.entity_type} {body.entity_id} not found")
    context = ExecutionContext(
        tenant_id=tenant_id,
        record=record,
        entity_type=workflow.entity_type,
        entity_id=body.entity_id,
        trigger_event="manual",
        user_id=user_id,
        trigger_data=body.trigger_data,
    )
    execution = await engine.execute_workflow(workflow, context)
    return WorkflowRunResponse(
        executed=execution is not None,
        execution=ExecutionOut.model_validate(execution) if execution is not None else None,
    )
