from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends

from app.schemas.scoring import (
    CalculateScoreRequest,
    LeadScoreOut,
    RecalculateResponse,
    ScoreHistoryOut,
    ScoringRuleCreate,
    ScoringRuleOut,
    ScoringRuleUpdate,
    ScoringSettings,
)
from app.services.lead_scoring import LeadScoreResult, LeadScoringEngine
from app.api.deps import get_scoring_engine

router = APIRouter(prefix="/scoring", tags=["Lead Scoring"])


def _score_out(result: LeadScoreResult, lead_id: Optional[UUID] = None) -> LeadScoreOut:
    return LeadScoreOut(
        lead_id=lead_id,
        score=result.score,
        label=result.label,
        breakdown=result.breakdown,
        matched_rules=result.matched_rules,
    )


# --- Rules ---


@router.get("/rules", response_model=List[ScoringRuleOut])
async def list_rules(
    engine: LeadScoringEngine = Depends(get_scoring_engine),
) -> List[ScoringRuleOut]:
    """All scoring rules; the defaults are seeded for a tenant with none."""
    return await engine.list_rules()


@router.post("/rules", response_model=ScoringRuleOut, status_code=201)
async def create_rule(
    body: ScoringRuleCreate,
    engine: LeadScoringEngine = Depends(get_scoring_engine),
) -> ScoringRuleOut:
    return await engine.create_rule(body.model_dump(mode="json"))


@router.patch("/rules/{rule_id}", response_model=ScoringRuleOut)
async def update_rule(
    rule_id: UUID,
    body: ScoringRuleUpdate,
    engine: LeadScoringEngine = Depends(get_scoring_engine),
) -> ScoringRuleOut:
    return await engine.update_rule(rule_id, body.model_dump(mode="json", exclude_unset=True))


@router.delete("/rules/{rule_id}", status_code=204)
async def delete_rule(
    rule_id: UUID,
    engine: LeadScoringEngine = Depends(get_scoring_engine),
) -> None:
    await engine.delete_rule(rule_id)


# --- Settings ---


@router.get("/settings", response_model=ScoringSettings)
async def get_settings(
    engine: LeadScoringEngine = Depends(get_scoring_engine),
) -> ScoringSettings:
    return ScoringSettings(**await engine.get_settings())


@router.put("/settings", response_model=ScoringSettings)
async def save_settings(
    body: ScoringSettings,
    engine: LeadScoringEngine = Depends(get_scoring_engine),
) -> ScoringSettings:
    return ScoringSettings(**await engine.save_settings(body.model_dump()))


# --- Scores ---


@router.post("/calculate", response_model=LeadScoreOut)
async def calculate_score(
    body: CalculateScoreRequest,
    engine: LeadScoringEngine = Depends(get_scoring_engine),
) -> LeadScoreOut:
    """Score an ad-hoc lead record without saving anything."""
    return _score_out(await engine.calculate_score(body.lead))


@router.post("/leads/{lead_id}/recalculate", response_model=LeadScoreOut)
async def recalculate_lead(
    lead_id: UUID,
    engine: LeadScoringEngine = Depends(get_scoring_engine),
) -> LeadScoreOut:
    result = await engine.update_lead_score(lead_id, triggered_by="manual")
    return _score_out(result, lead_id)


@router.post("/recalculate", response_model=RecalculateResponse)
async def recalculate_all(
    engine: LeadScoringEngine = Depends(get_scoring_engine),
) -> RecalculateResponse:
    return RecalculateResponse(**await engine.recalculate_all_scores())


@router.get("/leads/{lead_id}/history", response_model=List[ScoreHistoryOut])
async def score_history(
    lead_id: UUID,
    engine: LeadScoringEngine = Depends(get_scoring_engine),
) -> List[ScoreHistoryOut]:
    return await engine.get_score_history(lead_id)
