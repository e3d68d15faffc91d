from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from app.models.tenant import TeamMember, Tenant, User
from app.repositories.base import BaseRepository, TenantScopedRepository


class TenantRepository(BaseRepository):
    """Cross-tenant lookups (background jobs, public form and webhook routing)."""

    async def list_ids(self) -> List[UUID]:
        result = await self._db.execute(select(Tenant.id))
        return list(result.scalars().all())

    async def get(self, tenant_id: UUID) -> Optional[Tenant]:
        return await self._db.get(Tenant, tenant_id)

    async def get_by_slug(self, slug: str) -> Optional[Tenant]:
        result = await self._db.execute(select(Tenant).where(Tenant.slug == slug))
        return result.scalar_one_or_none()

    async def is_member(self, tenant_id: UUID, user_id: UUID) -> bool:
        result = await self._db.execute(
            select(User.id).where(User.id == user_id, User.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none() is not None

    async def set_calcom_webhook_secret(self, tenant: Tenant, secret: str) -> Tenant:
        tenant.calcom_webhook_secret = secret
        await self._db.flush()
        return tenant


class TeamRepository(TenantScopedRepository):
    async def list_member_ids(self, team_id: UUID) -> List[UUID]:
        """Team members in a stable order for round-robin assignment."""
        result = await self._db.execute(
            select(TeamMember.user_id)
            .where(TeamMember.tenant_id == self._tenant_id, TeamMember.team_id == team_id)
            .order_by(TeamMember.created_at, TeamMember.user_id)
        )
        return list(result.scalars().all())
