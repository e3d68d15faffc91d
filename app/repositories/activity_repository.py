from typing import Any, List
from uuid import UUID

from sqlalchemy import select

from app.models.activity import Activity
from app.models.notification import Notification
from app.models.task import Task
from app.repositories.base import TenantScopedRepository


class ActivityRepository(TenantScopedRepository):
    """Encapsulates queries against the ``activities`` table."""

    async def create(self, **kwargs: Any) -> Activity:
        activity = Activity(tenant_id=self._tenant_id, **kwargs)
        self._db.add(activity)
        await self._db.flush()
        return activity

    async def list_for_entity(self, entity_type: str, entity_id: UUID) -> List[Activity]:
        result = await self._db.execute(
            select(Activity)
            .where(
                Activity.tenant_id == self._tenant_id,
                Activity.entity_type == entity_type,
                Activity.entity_id == entity_id,
            )
            .order_by(Activity.created_at.desc())
        )
        return list(result.scalars().all())


class TaskRepository(TenantScopedRepository):
    """Inserts into ``tasks``."""

    async def create(self, **kwargs: Any) -> Task:
        task = Task(tenant_id=self._tenant_id, **kwargs)
        self._db.add(task)
        await self._db.flush()
        return task


class NotificationRepository(TenantScopedRepository):
    """Inserts into ``notifications``."""

    async def create_many(self, rows: List[dict]) -> List[Notification]:
        notifications = [Notification(tenant_id=self._tenant_id, **row) for row in rows]
        self._db.add_all(notifications)
        await self._db.flush()
        return notifications
