from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select

from app.models.scoring_settings import LeadScoreHistory, LeadScoringSettings
from app.repositories.base import TenantScopedRepository


class ScoringSettingsRepository(TenantScopedRepository):
    """``lead_scoring_settings``: at most one row per tenant."""

    async def get(self) -> Optional[LeadScoringSettings]:
        result = await self._db.execute(
            select(LeadScoringSettings).where(LeadScoringSettings.tenant_id == self._tenant_id)
        )
        return result.scalar_one_or_none()

    async def upsert(self, values: Dict[str, Any]) -> LeadScoringSettings:
        row = await self.get()
        if row is None:
            row = LeadScoringSettings(tenant_id=self._tenant_id, **values)
            self._db.add(row)
        else:
            for key, value in values.items():
                setattr(row, key, value)
        await self._db.flush()
        return row


class ScoreHistoryRepository(TenantScopedRepository):
    """Append-only ``lead_score_history`` rows."""

    async def add(
        self,
        lead_id: UUID,
        previous_score: Optional[int],
        new_score: int,
        change_reason: str,
        triggered_by: Optional[str],
    ) -> LeadScoreHistory:
        entry = LeadScoreHistory(
            tenant_id=self._tenant_id,
            lead_id=lead_id,
            previous_score=previous_score,
            new_score=new_score,
            change_reason=change_reason,
            triggered_by=triggered_by,
        )
        self._db.add(entry)
        await self._db.flush()
        return entry

    async def list_for_lead(self, lead_id: UUID, limit: int) -> List[LeadScoreHistory]:
        result = await self._db.execute(
            select(LeadScoreHistory)
            .where(
                LeadScoreHistory.tenant_id == self._tenant_id,
                LeadScoreHistory.lead_id == lead_id,
            )
            .order_by(LeadScoreHistory.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
