from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select

from app.models.linkedin import LinkedInActivity, LinkedInProfile
from app.repositories.base import TenantScopedRepository


class LinkedInRepository(TenantScopedRepository):
    """Saved LinkedIn profiles and the outreach activity logged against them."""

    async def get_profile(self, profile_id: UUID) -> Optional[LinkedInProfile]:
        result = await self._db.execute(
            select(LinkedInProfile).where(
                LinkedInProfile.id == profile_id,
                LinkedInProfile.tenant_id == self._tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_profile_for(
        self, contact_id: Optional[UUID] = None, lead_id: Optional[UUID] = None
    ) -> Optional[LinkedInProfile]:
        query = select(LinkedInProfile).where(LinkedInProfile.tenant_id == self._tenant_id)
        if contact_id:
            query = query.where(LinkedInProfile.contact_id == contact_id)
        elif lead_id:
            query = query.where(LinkedInProfile.lead_id == lead_id)
        else:
            return None
        result = await self._db.execute(query.limit(1))
        return result.scalar_one_or_none()

    async def upsert_profile(self, values: Dict[str, Any]) -> LinkedInProfile:
        """Insert or update on ``(tenant_id, linkedin_id)``."""
        row = None
        linkedin_id = values.get("linkedin_id")
        if linkedin_id:
            result = await self._db.execute(
                select(LinkedInProfile).where(
                    LinkedInProfile.tenant_id == self._tenant_id,
                    LinkedInProfile.linkedin_id == linkedin_id,
                )
            )
            row = result.scalar_one_or_none()
        if row is None:
            row = LinkedInProfile(tenant_id=self._tenant_id, **values)
            self._db.add(row)
        else:
            for key, value in values.items():
                setattr(row, key, value)
        await self._db.flush()
        return row

    async def add_activity(self, **kwargs: Any) -> LinkedInActivity:
        activity = LinkedInActivity(tenant_id=self._tenant_id, **kwargs)
        self._db.add(activity)
        await self._db.flush()
        return activity

    async def list_activities(self, profile_id: UUID) -> List[LinkedInActivity]:
        result = await self._db.execute(
            select(LinkedInActivity)
            .where(
                LinkedInActivity.tenant_id == self._tenant_id,
                LinkedInActivity.linkedin_profile_id == profile_id,
            )
            .order_by(LinkedInActivity.created_at.desc())
        )
        return list(result.scalars().all())
