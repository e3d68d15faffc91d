import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from app.core.entity_fields import resolve_field, to_entity_type
from app.core.exceptions import (
    ExecutionNotFoundError,
    WorkflowNotFoundError,
    WorkflowPersistenceError,
)
from app.models.workflow import Workflow, WorkflowExecution
from app.repositories.workflow_repository import WorkflowRepository

logger = logging.getLogger(__name__)

_CONDITION_COLUMNS = (
    "condition_group",
    "field_name",
    "operator",
    "field_value",
    "field_values",
    "logical_operator",
    "position",
)
_ACTION_COLUMNS = ("action_type", "action_config", "position", "delay_minutes", "stop_on_error")


def _validate_conditions(entity_type: str, conditions: Optional[List[Dict[str, Any]]]) -> None:
    """Every condition must reference a field on the workflow's entity type."""
    for condition in conditions or []:
        resolve_field(entity_type, condition["field_name"])


def _copy_children(items: List[Any], columns: tuple) -> List[Dict[str, Any]]:
    return [{col: getattr(item, col) for col in columns} for item in items]


class WorkflowService:
    """CRUD for workflows plus read access to their execution history.

    A workflow and its conditions/actions are written in a single
    transaction: either everything is saved or nothing is.
    """

    def __init__(self, repo: WorkflowRepository, user_id: Optional[UUID] = None) -> None:
        self._repo = repo
        self._user_id = user_id

    async def list_workflows(self, entity_type: Optional[str] = None) -> List[Workflow]:
        return await self._repo.list_workflows(entity_type)

    async def get_active_workflows(self, trigger_type: str, entity_type: str) -> List[Workflow]:
        return await self._repo.get_active(trigger_type, entity_type)

    async def get_workflow(self, workflow_id: UUID) -> Workflow:
        workflow = await self._repo.get_with_details(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(f"Workflow {workflow_id} not found")
        return workflow

    async def create_workflow(
        self,
        values: Dict[str, Any],
        conditions: List[Dict[str, Any]],
        actions: List[Dict[str, Any]],
    ) -> Workflow:
        values = {**values, "entity_type": to_entity_type(values["entity_type"]).value}
        _validate_conditions(values["entity_type"], conditions)
        try:
            workflow = await self._repo.add_workflow(
                {"created_by": self._user_id, **values}, conditions, actions
            )
            await self._repo.commit()
        except SQLAlchemyError as exc:
            await self._repo.rollback()
            logger.error("Failed to create workflow %r", values.get("name"), exc_info=True)
            raise WorkflowPersistenceError(f"Failed to create workflow: {exc.__class__.__name__}")
        logger.info("Created workflow %s (%s)", workflow.id, workflow.name)
        return await self.get_workflow(workflow.id)

    async def update_workflow(
        self,
        workflow_id: UUID,
        values: Dict[str, Any],
        conditions: Optional[List[Dict[str, Any]]] = None,
        actions: Optional[List[Dict[str, Any]]] = None,
    ) -> Workflow:
        workflow = await self.get_workflow(workflow_id)
        if values.get("entity_type"):
            values = {**values, "entity_type": to_entity_type(values["entity_type"]).value}
        entity_type = values.get("entity_type") or workflow.entity_type
        if conditions is None and entity_type != workflow.entity_type:
            # kept conditions must still name fields on the new entity type
            _validate_conditions(
                entity_type, [{"field_name": c.field_name} for c in workflow.conditions]
            )
        _validate_conditions(entity_type, conditions)
        try:
            await self._repo.update_workflow(workflow, values, conditions, actions)
            await self._repo.commit()
        except SQLAlchemyError as exc:
            await self._repo.rollback()
            logger.error("Failed to update workflow %s", workflow_id, exc_info=True)
            raise WorkflowPersistenceError(f"Failed to update workflow: {exc.__class__.__name__}")
        return await self.get_workflow(workflow_id)

    async def delete_workflow(self, workflow_id: UUID) -> None:
        workflow = await self.get_workflow(workflow_id)
        await self._repo.delete_workflow(workflow)
        await self._repo.commit()
        logger.info("Deleted workflow %s", workflow_id)

    async def toggle_workflow_active(self, workflow_id: UUID, is_active: bool) -> Workflow:
        return await self.update_workflow(workflow_id, {"is_active": is_active})

    async def duplicate_workflow(self, workflow_id: UUID, new_name: Optional[str] = None) -> Workflow:
        """Copy a workflow with its conditions and actions; the copy starts inactive."""
        original = await self.get_workflow(workflow_id)
        return await self.create_workflow(
            {
                "name": new_name or f"{original.name} (Copy)",
                "description": original.description,
                "trigger_type": original.trigger_type,
                "trigger_config": dict(original.trigger_config or {}),
                "entity_type": original.entity_type,
                "is_active": False,
                "run_once_per_record": original.run_once_per_record,
                "position": original.position,
            },
            _copy_children(original.conditions, _CONDITION_COLUMNS),
            _copy_children(original.actions, _ACTION_COLUMNS),
        )

    # ------------------------------------------------------------------
    # Executions
    # ------------------------------------------------------------------

    async def get_executions(
        self, workflow_id: Optional[UUID] = None, limit: int = 50
    ) -> List[WorkflowExecution]:
        return await self._repo.list_executions(workflow_id, limit)

    async def get_execution_details(self, execution_id: UUID) -> WorkflowExecution:
        execution = await self._repo.get_execution_with_logs(execution_id)
        if execution is None:
            raise ExecutionNotFoundError(f"Execution {execution_id} not found")
        return execution

    async def get_execution_stats(self, workflow_id: Optional[UUID] = None) -> Dict[str, int]:
        counts = await self._repo.count_executions_by_status(workflow_id)
        return {
            "total": sum(counts.values()),
            "completed": counts.get("completed", 0),
            "failed": counts.get("failed", 0),
            "running": counts.get("running", 0),
        }

    async def has_run_for_record(self, workflow_id: UUID, entity_type: str, entity_id: UUID) -> bool:
        return await self._repo.has_run_for_record(workflow_id, entity_type, entity_id)

    async def mark_run_for_record(self, workflow_id: UUID, entity_type: str, entity_id: UUID) -> None:
        await self._repo.mark_run_for_record(workflow_id, entity_type, entity_id)
