import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, func

from app.models.scoring_rule import LeadScoringRule
from app.repositories.base import TenantScopedRepository

logger = logging.getLogger(__name__)


class ScoringRuleRepository(TenantScopedRepository):
    """Encapsulates queries against the ``lead_scoring_rules`` table."""

    async def list_rules(self) -> List[LeadScoringRule]:
        """All rules for the tenant, grouped by category then priority."""
        result = await self._db.execute(
            select(LeadScoringRule)
            .where(LeadScoringRule.tenant_id == self._tenant_id)
            .order_by(LeadScoringRule.category, LeadScoringRule.priority)
        )
        return list(result.scalars().all())

    async def get_active_rules(self) -> List[LeadScoringRule]:
        """Active rules in evaluation order (lowest priority number first)."""
        result = await self._db.execute(
            select(LeadScoringRule)
            .where(
                LeadScoringRule.tenant_id == self._tenant_id,
                LeadScoringRule.is_active.is_(True),
            )
            .order_by(LeadScoringRule.priority)
        )
        return list(result.scalars().all())

    async def get_by_id(self, rule_id: UUID) -> Optional[LeadScoringRule]:
        result = await self._db.execute(
            select(LeadScoringRule).where(
                LeadScoringRule.id == rule_id,
                LeadScoringRule.tenant_id == self._tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def create(self, **kwargs: Any) -> LeadScoringRule:
        rule = LeadScoringRule(tenant_id=self._tenant_id, **kwargs)
        self._db.add(rule)
        await self._db.flush()
        return rule

    async def update(self, rule: LeadScoringRule, values: Dict[str, Any]) -> LeadScoringRule:
        for key, value in values.items():
            setattr(rule, key, value)
        await self._db.flush()
        return rule

    async def delete(self, rule: LeadScoringRule) -> None:
        await self._db.delete(rule)
        await self._db.flush()

    async def seed_if_empty(self) -> bool:
        """Insert the default rule set when the tenant has no rules yet.

        Returns ``True`` when rules were inserted.  The canonical rule
        definitions live in ``app.core.default_scoring_rules``.
        """
        from app.core.default_scoring_rules import DEFAULT_SCORING_RULES

        count_result = await self._db.execute(
            select(func.count())
            .select_from(LeadScoringRule)
            .where(LeadScoringRule.tenant_id == self._tenant_id)
        )
        if count_result.scalar():
            return False

        logger.info("Tenant %s has no scoring rules, seeding defaults", self._tenant_id)
        for rule_data in DEFAULT_SCORING_RULES:
            self._db.add(LeadScoringRule(tenant_id=self._tenant_id, **rule_data))
        await self._db.flush()
        logger.info("Seeded %d default scoring rules", len(DEFAULT_SCORING_RULES))
        return True
