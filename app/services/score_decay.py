import asyncio
import logging
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.lead_repository import LeadRepository
from app.repositories.scoring_rule_repository import ScoringRuleRepository
from app.repositories.scoring_settings_repository import (
    ScoreHistoryRepository,
    ScoringSettingsRepository,
)
from app.repositories.tenant_repository import TenantRepository
from app.services.lead_scoring import LeadScoringEngine

logger = logging.getLogger(__name__)


def build_scoring_engine(session: AsyncSession, tenant_id) -> LeadScoringEngine:
    return LeadScoringEngine(
        rule_repo=ScoringRuleRepository(session, tenant_id),
        settings_repo=ScoringSettingsRepository(session, tenant_id),
        history_repo=ScoreHistoryRepository(session, tenant_id),
        lead_repo=LeadRepository(session, tenant_id),
    )


async def decay_all_tenants(
    session_factory: Callable[..., AsyncSession],
) -> int:
    """One-shot: apply score decay for every tenant.

    Parameters:
        session_factory: An async context-manager callable that yields
            an ``AsyncSession`` (e.g. ``AsyncSessionLocal``).

    Returns the number of decayed leads across all tenants.
    """
    total = 0
    async with session_factory() as session:
        tenant_ids = await TenantRepository(session).list_ids()

    for tenant_id in tenant_ids:
        async with session_factory() as session:
            try:
                total += await build_scoring_engine(session, tenant_id).apply_score_decay()
            except Exception:
                await session.rollback()
                logger.warning("Score decay failed for tenant %s", tenant_id, exc_info=True)
    return total


async def start_score_decay_loop(
    session_factory: Callable[..., AsyncSession],
    interval_seconds: int,
) -> None:
    """Infinite loop that runs score decay on a fixed interval."""
    logger.info("Score decay background task started (interval=%ds)", interval_seconds)
    while True:
        try:
            count = await decay_all_tenants(session_factory)
            if count:
                logger.info("Score decay cycle complete: %d lead(s)", count)
        except Exception:
            logger.error("Score decay cycle failed", exc_info=True)
        await asyncio.sleep(interval_seconds)
