from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, update

from app.models.inbound_webhook import InboundWebhook, InboundWebhookLog
from app.repositories.base import BaseRepository, TenantScopedRepository


class InboundWebhookRepository(TenantScopedRepository):
    """Management of a tenant's inbound webhook endpoints."""

    async def list_webhooks(self) -> List[InboundWebhook]:
        result = await self._db.execute(
            select(InboundWebhook)
            .where(InboundWebhook.tenant_id == self._tenant_id)
            .order_by(InboundWebhook.created_at.desc())
        )
        return list(result.scalars().all())

    async def get(self, webhook_id: UUID) -> Optional[InboundWebhook]:
        result = await self._db.execute(
            select(InboundWebhook).where(
                InboundWebhook.id == webhook_id,
                InboundWebhook.tenant_id == self._tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def add(self, values: Dict[str, Any]) -> InboundWebhook:
        webhook = InboundWebhook(tenant_id=self._tenant_id, **values)
        self._db.add(webhook)
        await self._db.flush()
        return webhook

    async def update(self, webhook: InboundWebhook, values: Dict[str, Any]) -> InboundWebhook:
        for key, value in values.items():
            setattr(webhook, key, value)
        await self._db.flush()
        return webhook

    async def delete(self, webhook: InboundWebhook) -> None:
        await self._db.delete(webhook)
        await self._db.flush()

    async def list_logs(self, webhook_id: UUID, limit: int = 50) -> List[InboundWebhookLog]:
        result = await self._db.execute(
            select(InboundWebhookLog)
            .where(
                InboundWebhookLog.inbound_webhook_id == webhook_id,
                InboundWebhookLog.tenant_id == self._tenant_id,
            )
            .order_by(InboundWebhookLog.received_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())


class InboundEndpointRepository(BaseRepository):
    """Public side: endpoints are addressed by slug, not by an authenticated tenant."""

    async def get_active_by_slug(self, slug: str) -> Optional[InboundWebhook]:
        result = await self._db.execute(
            select(InboundWebhook).where(
                InboundWebhook.endpoint_slug == slug,
                InboundWebhook.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def add_log(self, **kwargs: Any) -> InboundWebhookLog:
        log = InboundWebhookLog(**kwargs)
        self._db.add(log)
        await self._db.flush()
        return log

    async def finish_log(self, log: InboundWebhookLog, **values: Any) -> None:
        for key, value in values.items():
            setattr(log, key, value)
        log.processed_at = datetime.now(timezone.utc)
        await self._db.flush()

    async def record_outcome(self, webhook_id: UUID, success: bool) -> None:
        """Bump the success or error counter in one UPDATE and stamp ``last_received_at``."""
        column = InboundWebhook.success_count if success else InboundWebhook.error_count
        await self._db.execute(
            update(InboundWebhook)
            .where(InboundWebhook.id == webhook_id)
            .values(
                {
                    column: column + 1,
                    InboundWebhook.last_received_at: datetime.now(timezone.utc),
                }
            )
        )
