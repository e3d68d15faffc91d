from fastapi import APIRouter

from app.api.v1.endpoints import (
    data,
    forms,
    google,
    health,
    linkedin,
    scoring,
    webhooks,
    workflows,
)

router = APIRouter(prefix="/api/v1")

router.include_router(scoring.router)
router.include_router(workflows.router)
router.include_router(data.router)
router.include_router(google.router)
router.include_router(linkedin.router)
router.include_router(webhooks.router)
router.include_router(forms.router)
router.include_router(health.router)
