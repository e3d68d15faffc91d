import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID

from app.core.cache import CacheService, cache_key
from app.core.constants import (
    DEFAULT_SCORING_SETTINGS,
    MAX_LEAD_SCORE,
    SCORE_CATEGORIES,
    SCORE_HISTORY_LIMIT,
)
from app.core.entity_fields import EntityType
from app.core.exceptions import LeadNotFoundError, ScoringRuleNotFoundError
from app.repositories.base import model_to_dict
from app.repositories.lead_repository import LeadRepository
from app.repositories.scoring_rule_repository import ScoringRuleRepository
from app.repositories.scoring_settings_repository import (
    ScoreHistoryRepository,
    ScoringSettingsRepository,
)
from app.services.rule_evaluator import evaluate_rule

logger = logging.getLogger(__name__)

_CATEGORY_ORDER = ("demographic", "behavioral", "engagement", "fit")


@dataclass
class LeadScoreResult:
    score: int
    label: str
    breakdown: Dict[str, int]
    matched_rules: List[Dict[str, Any]] = field(default_factory=list)

    def to_breakdown_json(self) -> Dict[str, Any]:
        return {**self.breakdown, "matched_rules": self.matched_rules}


def get_score_label(score: int, settings: Mapping[str, Any]) -> str:
    """Map a score onto ``cold < warm < hot < qualified``, highest threshold first."""
    if score >= settings["qualified_threshold"]:
        return "qualified"
    if score >= settings["hot_threshold"]:
        return "hot"
    if score >= settings["warm_threshold"]:
        return "warm"
    return "cold"


def score_record(
    record: Mapping[str, Any],
    rules: Sequence[Any],
    settings: Mapping[str, Any],
) -> LeadScoreResult:
    """Evaluate *rules* (already filtered to active, in priority order) against a lead.

    Each matching rule adds its points to its category once; the total is
    the sum of the categories capped at ``MAX_LEAD_SCORE``.
    """
    breakdown = {category: 0 for category in _CATEGORY_ORDER}
    matched: List[Dict[str, Any]] = []

    for rule in rules:
        if not evaluate_rule(
            record,
            rule.field_name,
            rule.operator,
            rule.field_value,
            rule.field_values,
            entity_type=EntityType.lead,
        ):
            continue
        if rule.category not in SCORE_CATEGORIES:
            logger.warning("Scoring rule %s has unknown category %r", rule.id, rule.category)
            continue
        breakdown[rule.category] += rule.points
        matched.append(
            {
                "rule_id": str(rule.id) if rule.id is not None else None,
                "rule_name": rule.name,
                "category": rule.category,
                "points": rule.points,
            }
        )

    score = min(MAX_LEAD_SCORE, sum(breakdown.values()))
    return LeadScoreResult(
        score=score,
        label=get_score_label(score, settings),
        breakdown=breakdown,
        matched_rules=matched,
    )


class LeadScoringEngine:
    """Rule-based lead scoring for one tenant.

    Rules and settings are stored per tenant.  An empty rule set is seeded
    with ``DEFAULT_SCORING_RULES`` the first time the engine needs rules.
    """

    def __init__(
        self,
        rule_repo: ScoringRuleRepository,
        settings_repo: ScoringSettingsRepository,
        history_repo: ScoreHistoryRepository,
        lead_repo: LeadRepository,
        cache: Optional[CacheService] = None,
    ) -> None:
        self._rule_repo = rule_repo
        self._settings_repo = settings_repo
        self._history_repo = history_repo
        self._lead_repo = lead_repo
        self._cache = cache or CacheService()
        self._rules_seeded = False

    @property
    def _settings_key(self) -> str:
        return cache_key("scoring_settings", self._settings_repo.tenant_id)

    async def _ensure_rules_seeded(self) -> None:
        if self._rules_seeded:
            return
        await self._rule_repo.seed_if_empty()
        self._rules_seeded = True

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    async def get_settings(self) -> Dict[str, Any]:
        """Return the tenant's settings, or the defaults when none are saved."""
        cached = await self._cache.get_json(self._settings_key)
        if cached is not None:
            return cached

        row = await self._settings_repo.get()
        if row is None:
            return dict(DEFAULT_SCORING_SETTINGS)

        settings = {key: getattr(row, key) for key in DEFAULT_SCORING_SETTINGS}
        await self._cache.set_json(self._settings_key, settings)
        return settings

    async def save_settings(self, values: Dict[str, Any]) -> Dict[str, Any]:
        merged = {**(await self.get_settings()), **values}
        await self._settings_repo.upsert(merged)
        await self._settings_repo.commit()
        await self._cache.delete(self._settings_key)
        return merged

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    async def list_rules(self) -> List[Any]:
        await self._ensure_rules_seeded()
        return await self._rule_repo.list_rules()

    async def get_active_rules(self) -> List[Any]:
        await self._ensure_rules_seeded()
        return await self._rule_repo.get_active_rules()

    async def create_rule(self, values: Dict[str, Any]) -> Any:
        rule = await self._rule_repo.create(**values)
        await self._rule_repo.commit()
        return rule

    async def update_rule(self, rule_id: UUID, values: Dict[str, Any]) -> Any:
        rule = await self._rule_repo.get_by_id(rule_id)
        if rule is None:
            raise ScoringRuleNotFoundError(f"Scoring rule {rule_id} not found")
        await self._rule_repo.update(rule, values)
        await self._rule_repo.commit()
        return rule

    async def delete_rule(self, rule_id: UUID) -> None:
        rule = await self._rule_repo.get_by_id(rule_id)
        if rule is None:
            raise ScoringRuleNotFoundError(f"Scoring rule {rule_id} not found")
        await self._rule_repo.delete(rule)
        await self._rule_repo.commit()

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    async def calculate_score(self, lead: Mapping[str, Any]) -> LeadScoreResult:
        """Score a flat lead record without persisting anything."""
        rules = await self.get_active_rules()
        settings = await self.get_settings()
        return score_record(lead, rules, settings)

    async def update_lead_score(
        self,
        lead_id: UUID,
        triggered_by: Optional[str] = None,
        commit: bool = True,
    ) -> LeadScoreResult:
        """Recalculate and persist a lead's score.

        A history row is written only when the score actually changes.
        """
        lead = await self._lead_repo.get_by_id(lead_id)
        if lead is None:
            raise LeadNotFoundError(f"Lead {lead_id} not found")

        result = await self.calculate_score(model_to_dict(lead))
        previous_score = lead.score

        await self._lead_repo.update_score(
            lead,
            {
                "score": result.score,
                "score_label": result.label,
                "demographic_score": result.breakdown["demographic"],
                "behavioral_score": result.breakdown["behavioral"],
                "engagement_score": result.breakdown["engagement"],
                "fit_score": result.breakdown["fit"],
                "score_breakdown": result.to_breakdown_json(),
                "last_score_update": datetime.now(timezone.utc),
            },
        )

        if previous_score != result.score:
            reason = f"Triggered by: {triggered_by}" if triggered_by else "Manual recalculation"
            await self._history_repo.add(
                lead_id=lead.id,
                previous_score=previous_score,
                new_score=result.score,
                change_reason=reason,
                triggered_by=triggered_by,
            )

        if commit:
            await self._lead_repo.commit()
        return result

    async def recalculate_all_scores(self) -> Dict[str, Any]:
        """Rescore every non-converted lead; per-lead failures are collected."""
        updated = 0
        errors: List[str] = []
        for lead in await self._lead_repo.list_scorable():
            try:
                await self.update_lead_score(lead.id, triggered_by="bulk_recalculation", commit=False)
                updated += 1
            except Exception as exc:
                logger.warning("Failed to rescore lead %s", lead.id, exc_info=True)
                errors.append(f"Failed to update lead {lead.id}: {exc}")
        await self._lead_repo.commit()
        return {"updated": updated, "errors": errors}

    async def apply_score_decay(self, now: Optional[datetime] = None) -> int:
        """Reduce scores of leads with no activity for ``score_decay_days``.

        Returns the number of leads decayed.
        """
        settings = await self.get_settings()
        if not settings["score_decay_enabled"]:
            return 0

        now = now or datetime.now(timezone.utc)
        days = settings["score_decay_days"]
        pct = settings["score_decay_percentage"]
        cutoff = now - timedelta(days=days)

        decayed = 0
        for lead in await self._lead_repo.list_decay_candidates(cutoff):
            decay_amount = math.ceil(lead.score * pct / 100)
            new_score = max(0, lead.score - decay_amount)
            previous_score = lead.score
            await self._lead_repo.update_score(
                lead,
                {
                    "score": new_score,
                    "score_label": get_score_label(new_score, settings),
                    "last_score_update": now,
                },
            )
            await self._history_repo.add(
                lead_id=lead.id,
                previous_score=previous_score,
                new_score=new_score,
                change_reason=f"Score decay ({pct}% after {days} days)",
                triggered_by="system_decay",
            )
            decayed += 1

        await self._lead_repo.commit()
        return decayed

    async def get_score_history(self, lead_id: UUID) -> List[Any]:
        """Newest score changes first."""
        return await self._history_repo.list_for_lead(lead_id, limit=SCORE_HISTORY_LIMIT)
