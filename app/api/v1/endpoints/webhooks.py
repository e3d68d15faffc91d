import logging
import secrets
from typing import Callable, List, Optional, Tuple
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Request
from pydantic import ValidationError

from app.core.config import settings
from app.core.exceptions import WebhookPayloadError, WebhookSignatureError
from app.core.rate_limit import limiter
from app.integrations.calcom import CalcomWebhookProcessor, verify_signature
from app.repositories.tenant_repository import TenantRepository
from app.schemas.calcom import (
    CalcomWebhookEvent,
    CalcomWebhookResponse,
    CalcomWebhookSecretOut,
)
from app.schemas.inbound_webhook import (
    InboundWebhookCreate,
    InboundWebhookLogOut,
    InboundWebhookOut,
    InboundWebhookResult,
    InboundWebhookUpdate,
    InboundWebhookWithCredentials,
)
from app.services.inbound_webhook_service import InboundWebhookProcessor, InboundWebhookService
from app.api.deps import (
    get_calcom_processor_factory,
    get_inbound_webhook_processor,
    get_inbound_webhook_service,
    get_tenant_id,
    get_tenant_repo,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


def _parse_identity(tenant_id: Optional[str], user_id: Optional[str]) -> Tuple[UUID, UUID]:
    if not tenant_id or not user_id:
        raise WebhookPayloadError("Missing tenant_id or user_id query parameter")
    try:
        return UUID(tenant_id), UUID(user_id)
    except ValueError:
        raise WebhookPayloadError("tenant_id and user_id must be UUIDs")


@router.post("/calcom", response_model=CalcomWebhookResponse)
@limiter.limit(settings.WEBHOOK_RATE_LIMIT)
async def calcom_webhook(
    request: Request,
    tenant_id: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    x_cal_signature_256: str = Header("", alias="X-Cal-Signature-256"),
    tenants: TenantRepository = Depends(get_tenant_repo),
    build_processor: Callable[[UUID, UUID], CalcomWebhookProcessor] = Depends(
        get_calcom_processor_factory
    ),
) -> CalcomWebhookResponse:
    """Receive a Cal.com booking lifecycle event.

    The URL names the receiving tenant and organiser.  The body must be
    signed with the tenant's webhook secret; tenants without one cannot
    receive events.
    """
    tenant_uuid, user_uuid = _parse_identity(tenant_id, user_id)
    tenant = await tenants.get(tenant_uuid)
    if tenant is None or not await tenants.is_member(tenant_uuid, user_uuid):
        raise WebhookPayloadError("Unknown tenant or user")
    if not tenant.calcom_webhook_secret:
        logger.warning("Cal.com webhook for tenant %s rejected: no secret configured", tenant_uuid)
        raise WebhookSignatureError("Cal.com webhook secret is not configured for this tenant")

    raw_body = await request.body()
    if not x_cal_signature_256 or not verify_signature(
        raw_body, x_cal_signature_256, tenant.calcom_webhook_secret
    ):
        raise WebhookSignatureError()

    try:
        event = CalcomWebhookEvent.model_validate_json(raw_body)
    except ValidationError as exc:
        logger.warning("Malformed Cal.com payload for tenant %s: %s", tenant_uuid, exc)
        raise WebhookPayloadError(f"Malformed Cal.com payload: {exc.error_count()} error(s)")

    result = await build_processor(tenant_uuid, user_uuid).process(event)
    return CalcomWebhookResponse(
        success=result["success"],
        booking_id=str(result["booking_id"]),
        event=result["event"],
    )


@router.post("/calcom/secret", response_model=CalcomWebhookSecretOut)
async def rotate_calcom_secret(
    tenant_id: UUID = Depends(get_tenant_id),
    tenants: TenantRepository = Depends(get_tenant_repo),
) -> CalcomWebhookSecretOut:
    """Issue a new signing secret; the previous one stops working immediately."""
    tenant = await tenants.get(tenant_id)
    if tenant is None:
        raise WebhookPayloadError("Unknown tenant")
    secret = secrets.token_hex(32)
    await tenants.set_calcom_webhook_secret(tenant, secret)
    await tenants.commit()
    logger.info("Rotated Cal.com webhook secret for tenant %s", tenant_id)
    return CalcomWebhookSecretOut(secret=secret)


# --- Generic inbound webhooks ---


@router.post("/receive/{slug}", response_model=InboundWebhookResult)
@limiter.limit(settings.WEBHOOK_RATE_LIMIT)
async def receive_inbound_webhook(
    request: Request,
    slug: str,
    processor: InboundWebhookProcessor = Depends(get_inbound_webhook_processor),
) -> InboundWebhookResult:
    """Map a JSON body from an external system onto a CRM record.

    Authenticated by the endpoint's API key (``X-API-Key`` or bearer
    token) or HMAC signature header.
    """
    result = await processor.process(
        slug,
        await request.body(),
        dict(request.headers),
        method=request.method,
        ip=request.client.host if request.client else None,
    )
    return InboundWebhookResult(**result)


@router.get("/inbound", response_model=List[InboundWebhookOut])
async def list_inbound_webhooks(
    service: InboundWebhookService = Depends(get_inbound_webhook_service),
) -> List[InboundWebhookOut]:
    return await service.list_webhooks()


@router.post("/inbound", response_model=InboundWebhookWithCredentials, status_code=201)
async def create_inbound_webhook(
    body: InboundWebhookCreate,
    service: InboundWebhookService = Depends(get_inbound_webhook_service),
) -> InboundWebhookWithCredentials:
    """Create an endpoint; the response is the only place its credential is shown."""
    return await service.create_webhook(body.model_dump(mode="json"))


@router.get("/inbound/{webhook_id}", response_model=InboundWebhookOut)
async def get_inbound_webhook(
    webhook_id: UUID,
    service: InboundWebhookService = Depends(get_inbound_webhook_service),
) -> InboundWebhookOut:
    return await service.get_webhook(webhook_id)


@router.patch("/inbound/{webhook_id}", response_model=InboundWebhookOut)
async def update_inbound_webhook(
    webhook_id: UUID,
    body: InboundWebhookUpdate,
    service: InboundWebhookService = Depends(get_inbound_webhook_service),
) -> InboundWebhookOut:
    return await service.update_webhook(webhook_id, body.model_dump(mode="json", exclude_unset=True))


@router.delete("/inbound/{webhook_id}", status_code=204)
async def delete_inbound_webhook(
    webhook_id: UUID,
    service: InboundWebhookService = Depends(get_inbound_webhook_service),
) -> None:
    await service.delete_webhook(webhook_id)


@router.post("/inbound/{webhook_id}/rotate", response_model=InboundWebhookWithCredentials)
async def rotate_inbound_webhook_credentials(
    webhook_id: UUID,
    service: InboundWebhookService = Depends(get_inbound_webhook_service),
) -> InboundWebhookWithCredentials:
    return await service.rotate_credentials(webhook_id)


@router.get("/inbound/{webhook_id}/logs", response_model=List[InboundWebhookLogOut])
async def list_inbound_webhook_logs(
    webhook_id: UUID,
    limit: int = Query(50, ge=1, le=500),
    service: InboundWebhookService = Depends(get_inbound_webhook_service),
) -> List[InboundWebhookLogOut]:
    return await service.get_logs(webhook_id, limit)
