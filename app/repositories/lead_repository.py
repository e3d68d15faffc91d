from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select

from app.models.lead import Lead
from app.repositories.base import TenantScopedRepository


class LeadRepository(TenantScopedRepository):
    """Encapsulates every SQL query that touches the ``leads`` table."""

    async def get_by_id(self, lead_id: UUID) -> Optional[Lead]:
        """Return a single lead by primary key, or ``None``."""
        result = await self._db.execute(
            select(Lead).where(Lead.id == lead_id, Lead.tenant_id == self._tenant_id)
        )
        return result.scalar_one_or_none()

    async def list_scorable(self) -> List[Lead]:
        """Every lead that has not been converted yet."""
        result = await self._db.execute(
            select(Lead).where(
                Lead.tenant_id == self._tenant_id,
                Lead.status != "converted",
            )
        )
        return list(result.scalars().all())

    async def list_decay_candidates(self, inactive_before: datetime) -> List[Lead]:
        """Non-converted leads with a positive score and no activity since *inactive_before*."""
        result = await self._db.execute(
            select(Lead).where(
                Lead.tenant_id == self._tenant_id,
                Lead.status != "converted",
                Lead.last_activity_at < inactive_before,
                Lead.score > 0,
            )
        )
        return list(result.scalars().all())

    async def create(self, **kwargs: Any) -> Lead:
        """Insert a new lead and return the model instance."""
        lead = Lead(tenant_id=self._tenant_id, **kwargs)
        self._db.add(lead)
        await self._db.flush()
        return lead

    async def update_score(self, lead: Lead, values: Dict[str, Any]) -> None:
        """Write score columns (score, label, category scores, breakdown)."""
        for key, value in values.items():
            setattr(lead, key, value)
        await self._db.flush()
