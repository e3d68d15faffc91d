from fastapi import APIRouter, Depends, Request

from app.core.config import settings
from app.core.rate_limit import limiter
from app.schemas.web_form import (
    FormSubmitRequest,
    FormSubmitResponse,
    FormViewRequest,
    PublicFormOut,
)
from app.services.web_form_service import WebFormService
from app.api.deps import get_web_form_service

router = APIRouter(prefix="/forms", tags=["Public Forms"])


def _client_tracking(request: Request) -> dict:
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


@router.get("/{tenant_slug}/{form_slug}", response_model=PublicFormOut)
@limiter.limit(settings.PUBLIC_FORM_RATE_LIMIT)
async def get_public_form(
    request: Request,
    tenant_slug: str,
    form_slug: str,
    service: WebFormService = Depends(get_web_form_service),
) -> PublicFormOut:
    """Render data for an active form; no authentication required."""
    return PublicFormOut(**await service.get_public_form(tenant_slug, form_slug))


@router.post("/{tenant_slug}/{form_slug}/views")
@limiter.limit(settings.PUBLIC_FORM_RATE_LIMIT)
async def track_form_view(
    request: Request,
    tenant_slug: str,
    form_slug: str,
    body: FormViewRequest,
    service: WebFormService = Depends(get_web_form_service),
) -> dict:
    tracking = {**body.model_dump(), **_client_tracking(request)}
    return await service.track_view(tenant_slug, form_slug, tracking)


@router.post("/{tenant_slug}/{form_slug}/submit", response_model=FormSubmitResponse)
@limiter.limit(settings.PUBLIC_FORM_RATE_LIMIT)
async def submit_form(
    request: Request,
    tenant_slug: str,
    form_slug: str,
    body: FormSubmitRequest,
    service: WebFormService = Depends(get_web_form_service),
) -> FormSubmitResponse:
    """Store a submission; non-spam submissions become leads."""
    tracking = {
        **_client_tracking(request),
        "referrer_url": body.referrer_url or request.headers.get("referer"),
        "page_url": body.page_url,
    }
    result = await service.submit(
        tenant_slug,
        form_slug,
        body.data,
        utm_params=body.utm.model_dump(),
        tracking=tracking,
    )
    return FormSubmitResponse(**result)
