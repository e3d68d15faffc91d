"""Workflow execution: condition evaluation and action dispatch."""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

import httpx

from app.core.cache import CacheService, cache_key
from app.core.config import settings
from app.core.entity_fields import get_field_value, resolve_field, to_entity_type
from app.core.exceptions import CRMError, UnknownFieldError
from app.integrations.google.gmail import GmailService
from app.models.workflow import Workflow, WorkflowAction, WorkflowCondition, WorkflowExecution
from app.repositories.activity_repository import NotificationRepository, TaskRepository
from app.repositories.record_repository import RecordRepository
from app.repositories.tenant_repository import TeamRepository
from app.repositories.workflow_repository import WorkflowRepository
from app.services.rule_evaluator import compare

logger = logging.getLogger(__name__)

_RECORD_PLACEHOLDER_RE = re.compile(r"\{\{record\.(\w+)\}\}")
_READ_ONLY_FIELDS = frozenset({"id", "created_at", "updated_at"})


@dataclass
class ExecutionContext:
    tenant_id: UUID
    record: Dict[str, Any]
    entity_type: str
    entity_id: UUID
    trigger_event: str
    user_id: Optional[UUID] = None
    trigger_data: Optional[Dict[str, Any]] = None


@dataclass
class ActionResult:
    success: bool
    output: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def replace_placeholders(template: str, context: ExecutionContext, now: Optional[datetime] = None) -> str:
    """Expand ``{{record.<field>}}``, ``{{today}}``, ``{{now}}`` and ``{{current_user.id}}``."""
    now = now or _utcnow()
    result = _RECORD_PLACEHOLDER_RE.sub(
        lambda m: _as_text(context.record.get(m.group(1))), template or ""
    )
    result = result.replace("{{today}}", now.date().isoformat())
    result = result.replace("{{now}}", now.isoformat())
    if context.user_id is not None:
        result = result.replace("{{current_user.id}}", str(context.user_id))
    return result


def evaluate_condition(condition: WorkflowCondition, record: Dict[str, Any], entity_type: str) -> bool:
    try:
        value = get_field_value(record, entity_type, condition.field_name)
    except UnknownFieldError:
        logger.warning(
            "Condition %s references unknown field %r", condition.id, condition.field_name
        )
        return False
    return compare(value, condition.operator, condition.field_value, condition.field_values)


def evaluate_conditions(
    conditions: Sequence[WorkflowCondition], record: Dict[str, Any], entity_type: str
) -> bool:
    """Groups are OR'd; inside a group conditions fold left by position.

    Each condition after the first combines with the running result using
    its own ``logical_operator``.  No conditions means the workflow always runs.
    """
    if not conditions:
        return True

    groups: Dict[int, List[WorkflowCondition]] = {}
    for condition in conditions:
        groups.setdefault(condition.condition_group, []).append(condition)

    for group in groups.values():
        ordered = sorted(group, key=lambda c: c.position)
        result = evaluate_condition(ordered[0], record, entity_type)
        for condition in ordered[1:]:
            current = evaluate_condition(condition, record, entity_type)
            if (condition.logical_operator or "AND").upper() == "OR":
                result = result or current
            else:
                result = result and current
        if result:
            return True
    return False


class WorkflowEngine:
    """Runs a tenant's active workflows against a record event."""

    def __init__(
        self,
        workflow_repo: WorkflowRepository,
        record_repo: RecordRepository,
        task_repo: TaskRepository,
        notification_repo: NotificationRepository,
        team_repo: TeamRepository,
        cache: Optional[CacheService] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        gmail: Optional[GmailService] = None,
    ) -> None:
        self._workflows = workflow_repo
        self._records = record_repo
        self._tasks = task_repo
        self._notifications = notification_repo
        self._teams = team_repo
        self._cache = cache or CacheService()
        self._http = http_client
        self._gmail = gmail

    async def trigger_workflows(self, context: ExecutionContext) -> List[WorkflowExecution]:
        """Run every matching active workflow; one failure does not stop the rest."""
        executions: List[WorkflowExecution] = []
        workflows = await self._workflows.get_active(context.trigger_event, context.entity_type)
        for workflow in workflows:
            try:
                execution = await self.execute_workflow(workflow, context)
            except Exception:
                logger.error("Error executing workflow %s", workflow.id, exc_info=True)
                continue
            if execution is not None:
                executions.append(execution)
        return executions

    async def execute_workflow(
        self, workflow: Workflow, context: ExecutionContext
    ) -> Optional[WorkflowExecution]:
        if workflow.run_once_per_record and await self._workflows.has_run_for_record(
            workflow.id, context.entity_type, context.entity_id
        ):
            logger.info(
                "Workflow %s already ran for %s:%s", workflow.id, context.entity_type, context.entity_id
            )
            return None

        if not evaluate_conditions(workflow.conditions, context.record, context.entity_type):
            logger.debug("Conditions not met for workflow %s", workflow.id)
            return None

        execution = await self._workflows.create_execution(
            workflow_id=workflow.id,
            entity_type=context.entity_type,
            entity_id=context.entity_id,
            trigger_event=context.trigger_event,
            trigger_data=context.trigger_data,
            status="pending",
        )

        try:
            await self._workflows.update_execution(execution, status="running", started_at=_utcnow())

            failed_error: Optional[str] = None
            for action in sorted(workflow.actions, key=lambda a: a.position):
                if action.delay_minutes and action.delay_minutes > 0:
                    logger.info(
                        "Skipping delayed action %s (%d min delay)", action.id, action.delay_minutes
                    )
                    continue
                result = await self.execute_action(action, context, execution.id)
                if not result.success and action.stop_on_error:
                    failed_error = result.error
                    break

            if failed_error is not None:
                await self._workflows.update_execution(
                    execution, status="failed", completed_at=_utcnow(), error_message=failed_error
                )
            else:
                await self._workflows.update_execution(execution, status="completed", completed_at=_utcnow())

            if workflow.run_once_per_record:
                await self._workflows.mark_run_for_record(
                    workflow.id, context.entity_type, context.entity_id
                )
            await self._workflows.commit()
            return execution
        except Exception as exc:
            await self._workflows.update_execution(
                execution, status="failed", completed_at=_utcnow(), error_message=str(exc) or "Unknown error"
            )
            await self._workflows.commit()
            raise

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def execute_action(
        self, action: WorkflowAction, context: ExecutionContext, execution_id: UUID
    ) -> ActionResult:
        log = await self._workflows.create_action_log(
            execution_id=execution_id,
            action_id=action.id,
            action_type=action.action_type,
            status="pending",
            input_data=action.action_config,
        )
        await self._workflows.update_action_log(log, status="running", started_at=_utcnow())

        handler = getattr(self, f"_action_{action.action_type}", None)
        if handler is None:
            result = ActionResult(False, error=f"Unknown action type: {action.action_type}")
        else:
            try:
                async with self._workflows.savepoint():
                    result = await handler(action.action_config or {}, context)
            except (CRMError, ValueError, httpx.HTTPError) as exc:
                result = ActionResult(False, error=str(exc) or exc.__class__.__name__)
            except Exception as exc:
                logger.error("Action %s (%s) raised", action.id, action.action_type, exc_info=True)
                result = ActionResult(False, error=str(exc) or "Unknown error")

        await self._workflows.update_action_log(
            log,
            status="completed" if result.success else "failed",
            completed_at=_utcnow(),
            output_data=result.output or None,
            error_message=result.error,
        )
        return result

    async def _action_create_task(self, config: Dict[str, Any], context: ExecutionContext) -> ActionResult:
        due = _utcnow().date()
        if config.get("due_days"):
            due = due + timedelta(days=int(config["due_days"]))
        task = await self._tasks.create(
            entity_type=context.entity_type,
            entity_id=context.entity_id,
            subject=replace_placeholders(config.get("subject", ""), context),
            description=replace_placeholders(config.get("description", ""), context),
            task_type=config.get("task_type") or "todo",
            priority=config.get("priority") or "medium",
            status="not_started",
            due_date=due,
            owner_id=config.get("assign_to") or context.user_id,
        )
        return ActionResult(True, {"task_id": str(task.id)})

    async def _action_update_field(self, config: Dict[str, Any], context: ExecutionContext) -> ActionResult:
        field_name = config.get("field_name")
        if not field_name:
            return ActionResult(False, error="Field name is required")
        resolve_field(context.entity_type, field_name)
        if field_name in _READ_ONLY_FIELDS:
            return ActionResult(False, error=f"Field '{field_name}' cannot be updated")

        value = replace_placeholders(config.get("field_value", ""), context)
        record = await self._records.get(context.entity_type, context.entity_id)
        if record is None:
            return ActionResult(False, error=f"{context.entity_type} {context.entity_id} not found")
        await self._records.update(record, {field_name: value})
        context.record[field_name] = value
        return ActionResult(True, {"field": field_name, "value": value})

    async def _next_team_member(self, team_id: str) -> Optional[UUID]:
        members = await self._teams.list_member_ids(UUID(str(team_id)))
        if not members:
            return None
        key = cache_key("workflow", "round_robin", team_id)
        counter = await self._cache.incr(key)
        return members[(counter - 1) % len(members)]

    async def _action_assign_owner(self, config: Dict[str, Any], context: ExecutionContext) -> ActionResult:
        user_id = config.get("user_id")
        if not user_id and config.get("team_id"):
            user_id = await self._next_team_member(config["team_id"])
        if not user_id:
            return ActionResult(False, error="No user to assign to")

        record = await self._records.get(context.entity_type, context.entity_id)
        if record is None:
            return ActionResult(False, error=f"{context.entity_type} {context.entity_id} not found")
        await self._records.update(record, {"owner_id": user_id})
        context.record["owner_id"] = user_id
        return ActionResult(True, {"assigned_to": str(user_id)})

    async def _action_send_notification(self, config: Dict[str, Any], context: ExecutionContext) -> ActionResult:
        targets: List[str] = []
        if config.get("notify_owner") and context.record.get("owner_id"):
            targets.append(str(context.record["owner_id"]))
        targets.extend(str(u) for u in config.get("user_ids") or [])
        unique = list(dict.fromkeys(targets))
        if not unique:
            return ActionResult(False, error="No users to notify")

        title = replace_placeholders(config.get("title", ""), context)
        message = replace_placeholders(config.get("message", ""), context)
        await self._notifications.create_many(
            [
                {
                    "user_id": UUID(user_id),
                    "title": title,
                    "body": message,
                    "notification_type": "system",
                    "entity_type": context.entity_type,
                    "entity_id": context.entity_id,
                }
                for user_id in unique
            ]
        )
        return ActionResult(True, {"notified_users": len(unique)})

    async def _action_webhook_call(self, config: Dict[str, Any], context: ExecutionContext) -> ActionResult:
        url = config.get("url")
        if not url:
            return ActionResult(False, error="Webhook URL is required")
        method = (config.get("method") or "POST").upper()
        template = config.get("body_template") or json.dumps(context.record, default=str)
        body = replace_placeholders(template, context)
        headers = {"Content-Type": "application/json", **(config.get("headers") or {})}

        if self._http is not None:
            response = await self._send_webhook(self._http, method, url, headers, body)
        else:
            async with httpx.AsyncClient(timeout=settings.WEBHOOK_TIMEOUT_SECONDS) as client:
                response = await self._send_webhook(client, method, url, headers, body)

        if not response.is_success:
            return ActionResult(
                False, error=f"Webhook returned {response.status_code}: {response.reason_phrase}"
            )
        return ActionResult(True, {"status": response.status_code, "status_text": response.reason_phrase})

    @staticmethod
    async def _send_webhook(
        client: httpx.AsyncClient, method: str, url: str, headers: Dict[str, str], body: str
    ) -> httpx.Response:
        return await client.request(
            method, url, headers=headers, content=None if method == "GET" else body.encode()
        )

    async def _action_send_email(self, config: Dict[str, Any], context: ExecutionContext) -> ActionResult:
        to = replace_placeholders(config.get("to") or "{{record.email}}", context)
        subject = replace_placeholders(config.get("subject", ""), context)
        body = replace_placeholders(config.get("body", ""), context)
        if not to:
            return ActionResult(False, error="No recipient email address")

        if self._gmail is None:
            logger.info("Gmail not connected; email to %s recorded but not sent", to)
            return ActionResult(True, {"message": "Email action placeholder", "to": to})

        sent = await self._gmail.send([to], subject, body, html=config.get("html"))
        return ActionResult(True, {"message_id": sent.get("id"), "to": to})

    async def _action_create_record(self, config: Dict[str, Any], context: ExecutionContext) -> ActionResult:
        target = config.get("record_entity_type")
        if not target:
            return ActionResult(False, error="Entity type is required")
        entity_type = to_entity_type(target)

        values: Dict[str, Any] = {}
        for target_field, source in (config.get("field_mappings") or {}).items():
            resolve_field(entity_type, target_field)
            text = str(source)
            if text.startswith("{{") and text.endswith("}}"):
                values[target_field] = replace_placeholders(text, context)
            else:
                values[target_field] = text

        created = await self._records.create(entity_type, values)
        return ActionResult(True, {"created_id": str(created.id), "entity_type": entity_type.value})
