from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from app.models.workflow import (
    Workflow,
    WorkflowAction,
    WorkflowActionLog,
    WorkflowCondition,
    WorkflowExecution,
    WorkflowRecordRun,
)
from app.repositories.base import TenantScopedRepository


class WorkflowRepository(TenantScopedRepository):
    """Queries over workflows, their conditions/actions and execution history."""

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    def _with_details(self):
        return select(Workflow).options(
            selectinload(Workflow.conditions),
            selectinload(Workflow.actions),
        )

    async def list_workflows(self, entity_type: Optional[str] = None) -> List[Workflow]:
        query = self._with_details().where(Workflow.tenant_id == self._tenant_id)
        if entity_type:
            query = query.where(Workflow.entity_type == entity_type)
        result = await self._db.execute(query.order_by(Workflow.position, Workflow.created_at))
        return list(result.scalars().all())

    async def get_with_details(self, workflow_id: UUID) -> Optional[Workflow]:
        result = await self._db.execute(
            self._with_details().where(
                Workflow.id == workflow_id,
                Workflow.tenant_id == self._tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_active(self, trigger_type: str, entity_type: str) -> List[Workflow]:
        result = await self._db.execute(
            self._with_details()
            .where(
                Workflow.tenant_id == self._tenant_id,
                Workflow.is_active.is_(True),
                Workflow.trigger_type == trigger_type,
                Workflow.entity_type == entity_type,
            )
            .order_by(Workflow.position)
        )
        return list(result.scalars().all())

    async def add_workflow(
        self,
        values: Dict[str, Any],
        conditions: List[Dict[str, Any]],
        actions: List[Dict[str, Any]],
    ) -> Workflow:
        """Stage a workflow with its children; caller commits."""
        workflow = Workflow(tenant_id=self._tenant_id, **values)
        workflow.conditions = [WorkflowCondition(**c) for c in conditions]
        workflow.actions = [WorkflowAction(**a) for a in actions]
        self._db.add(workflow)
        await self._db.flush()
        return workflow

    async def update_workflow(
        self,
        workflow: Workflow,
        values: Dict[str, Any],
        conditions: Optional[List[Dict[str, Any]]] = None,
        actions: Optional[List[Dict[str, Any]]] = None,
    ) -> Workflow:
        """Apply column updates; child lists are replaced wholesale when given."""
        for key, value in values.items():
            setattr(workflow, key, value)
        if conditions is not None:
            workflow.conditions = [WorkflowCondition(**c) for c in conditions]
        if actions is not None:
            workflow.actions = [WorkflowAction(**a) for a in actions]
        await self._db.flush()
        return workflow

    async def delete_workflow(self, workflow: Workflow) -> None:
        await self._db.delete(workflow)
        await self._db.flush()

    # ------------------------------------------------------------------
    # Executions
    # ------------------------------------------------------------------

    async def create_execution(self, **kwargs: Any) -> WorkflowExecution:
        execution = WorkflowExecution(tenant_id=self._tenant_id, **kwargs)
        self._db.add(execution)
        await self._db.flush()
        return execution

    async def update_execution(self, execution: WorkflowExecution, **values: Any) -> None:
        for key, value in values.items():
            setattr(execution, key, value)
        await self._db.flush()

    async def list_executions(
        self, workflow_id: Optional[UUID] = None, limit: int = 50
    ) -> List[WorkflowExecution]:
        query = select(WorkflowExecution).where(WorkflowExecution.tenant_id == self._tenant_id)
        if workflow_id:
            query = query.where(WorkflowExecution.workflow_id == workflow_id)
        result = await self._db.execute(
            query.order_by(WorkflowExecution.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def get_execution_with_logs(self, execution_id: UUID) -> Optional[WorkflowExecution]:
        result = await self._db.execute(
            select(WorkflowExecution)
            .options(selectinload(WorkflowExecution.action_logs))
            .where(
                WorkflowExecution.id == execution_id,
                WorkflowExecution.tenant_id == self._tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def count_executions_by_status(self, workflow_id: Optional[UUID] = None) -> Dict[str, int]:
        query = (
            select(WorkflowExecution.status, func.count())
            .where(WorkflowExecution.tenant_id == self._tenant_id)
            .group_by(WorkflowExecution.status)
        )
        if workflow_id:
            query = query.where(WorkflowExecution.workflow_id == workflow_id)
        result = await self._db.execute(query)
        return {status: count for status, count in result.all()}

    async def create_action_log(self, **kwargs: Any) -> WorkflowActionLog:
        log = WorkflowActionLog(**kwargs)
        self._db.add(log)
        await self._db.flush()
        return log

    async def update_action_log(self, log: WorkflowActionLog, **values: Any) -> None:
        for key, value in values.items():
            setattr(log, key, value)
        await self._db.flush()

    # ------------------------------------------------------------------
    # Run-once-per-record markers
    # ------------------------------------------------------------------

    async def has_run_for_record(self, workflow_id: UUID, entity_type: str, entity_id: UUID) -> bool:
        result = await self._db.execute(
            select(WorkflowRecordRun.id).where(
                WorkflowRecordRun.workflow_id == workflow_id,
                WorkflowRecordRun.entity_type == entity_type,
                WorkflowRecordRun.entity_id == entity_id,
            )
        )
        return result.first() is not None

    async def mark_run_for_record(self, workflow_id: UUID, entity_type: str, entity_id: UUID) -> None:
        if await self.has_run_for_record(workflow_id, entity_type, entity_id):
            return
        self._db.add(
            WorkflowRecordRun(workflow_id=workflow_id, entity_type=entity_type, entity_id=entity_id)
        )
        await self._db.flush()
