from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import (
    ExecutionNotFoundError,
    UnknownEntityTypeError,
    UnknownFieldError,
    WorkflowNotFoundError,
    WorkflowPersistenceError,
)
from app.services.workflow_service import WorkflowService


def _stored_workflow(**overrides):
    values = {
        "id": uuid4(),
        "name": "Welcome",
        "description": "Greets new leads",
        "trigger_type": "record_created",
        "trigger_config": {"x": 1},
        "entity_type": "lead",
        "is_active": True,
        "run_once_per_record": True,
        "position": 3,
        "conditions": [
            SimpleNamespace(
                condition_group=0,
                field_name="status",
                operator="equals",
                field_value="new",
                field_values=None,
                logical_operator="AND",
                position=0,
            )
        ],
        "actions": [
            SimpleNamespace(
                action_type="create_task",
                action_config={"subject": "Call"},
                position=0,
                delay_minutes=0,
                stop_on_error=True,
            )
        ],
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def repo() -> AsyncMock:
    repo = AsyncMock()
    stored = _stored_workflow()
    repo.add_workflow = AsyncMock(return_value=stored)
    repo.get_with_details = AsyncMock(return_value=stored)
    return repo


class TestCreateWorkflow:
    @pytest.mark.asyncio
    async def test_entity_type_is_normalised_and_creator_recorded(self, repo):
        user_id = uuid4()
        service = WorkflowService(repo, user_id=user_id)

        await service.create_workflow(
            {"name": "Welcome", "entity_type": "Leads", "trigger_type": "record_created"},
            [{"field_name": "status", "operator": "equals", "field_value": "new"}],
            [],
        )

        values = repo.add_workflow.await_args.args[0]
        assert values["entity_type"] == "lead"
        assert values["created_by"] == user_id
        repo.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_condition_on_unknown_field_is_rejected(self, repo):
        service = WorkflowService(repo)
        with pytest.raises(UnknownFieldError):
            await service.create_workflow(
                {"name": "x", "entity_type": "deal"},
                [{"field_name": "first_name", "operator": "exists"}],
                [],
            )
        repo.add_workflow.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_entity_type_is_rejected(self, repo):
        with pytest.raises(UnknownEntityTypeError):
            await WorkflowService(repo).create_workflow({"name": "x", "entity_type": "ticket"}, [], [])

    @pytest.mark.asyncio
    async def test_database_failure_rolls_back(self, repo):
        repo.add_workflow = AsyncMock(side_effect=IntegrityError("insert", {}, Exception("dup")))
        service = WorkflowService(repo)

        with pytest.raises(WorkflowPersistenceError):
            await service.create_workflow({"name": "x", "entity_type": "lead"}, [], [])

        repo.rollback.assert_awaited_once()
        repo.commit.assert_not_awaited()


class TestUpdateWorkflow:
    @pytest.mark.asyncio
    async def test_conditions_validated_against_existing_entity_type(self, repo):
        service = WorkflowService(repo)
        with pytest.raises(UnknownFieldError):
            await service.update_workflow(
                uuid4(), {"name": "renamed"}, conditions=[{"field_name": "amount", "operator": "exists"}]
            )

    @pytest.mark.asyncio
    async def test_entity_type_change_is_normalised(self, repo):
        await WorkflowService(repo).update_workflow(uuid4(), {"entity_type": "Leads"})

        _, values, _, _ = repo.update_workflow.await_args.args
        assert values["entity_type"] == "lead"

    @pytest.mark.asyncio
    async def test_entity_type_change_revalidates_stored_conditions(self, repo):
        # the stored condition filters on "status", which accounts do not have
        with pytest.raises(UnknownFieldError):
            await WorkflowService(repo).update_workflow(uuid4(), {"entity_type": "account"})
        repo.update_workflow.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_entity_type_change_with_replacement_conditions(self, repo):
        await WorkflowService(repo).update_workflow(
            uuid4(),
            {"entity_type": "account"},
            conditions=[{"field_name": "domain", "operator": "exists"}],
        )
        repo.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_entity_type_on_update_is_rejected(self, repo):
        with pytest.raises(UnknownEntityTypeError):
            await WorkflowService(repo).update_workflow(uuid4(), {"entity_type": "spaceship"})

    @pytest.mark.asyncio
    async def test_missing_workflow(self, repo):
        repo.get_with_details = AsyncMock(return_value=None)
        with pytest.raises(WorkflowNotFoundError):
            await WorkflowService(repo).update_workflow(uuid4(), {"name": "x"})

    @pytest.mark.asyncio
    async def test_toggle_only_touches_is_active(self, repo):
        service = WorkflowService(repo)
        workflow_id = uuid4()

        await service.toggle_workflow_active(workflow_id, False)

        _, values, conditions, actions = repo.update_workflow.await_args.args
        assert values == {"is_active": False}
        assert conditions is None and actions is None


class TestDuplicateWorkflow:
    @pytest.mark.asyncio
    async def test_copy_is_inactive_with_children(self, repo):
        service = WorkflowService(repo)

        await service.duplicate_workflow(uuid4())

        values, conditions, actions = repo.add_workflow.await_args.args
        assert values["name"] == "Welcome (Copy)"
        assert values["is_active"] is False
        assert values["run_once_per_record"] is True
        assert conditions[0]["field_name"] == "status"
        assert actions[0]["action_config"] == {"subject": "Call"}

    @pytest.mark.asyncio
    async def test_custom_name(self, repo):
        await WorkflowService(repo).duplicate_workflow(uuid4(), new_name="Second welcome")
        assert repo.add_workflow.await_args.args[0]["name"] == "Second welcome"


class TestExecutions:
    @pytest.mark.asyncio
    async def test_stats(self, repo):
        repo.count_executions_by_status = AsyncMock(return_value={"completed": 4, "failed": 1, "skipped": 2})

        stats = await WorkflowService(repo).get_execution_stats()

        assert stats == {"total": 7, "completed": 4, "failed": 1, "running": 0}

    @pytest.mark.asyncio
    async def test_missing_execution(self, repo):
        repo.get_execution_with_logs = AsyncMock(return_value=None)
        with pytest.raises(ExecutionNotFoundError):
            await WorkflowService(repo).get_execution_details(uuid4())
