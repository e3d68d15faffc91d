import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import TenantRequiredError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request identity
# ---------------------------------------------------------------------------


async def get_tenant_id(
    x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-ID"),
) -> UUID:
    """Tenant of the calling user; every tenant-owned query is scoped by it."""
    if not x_tenant_id:
        raise TenantRequiredError()
    try:
        return UUID(x_tenant_id)
    except ValueError:
        raise TenantRequiredError(f"Invalid X-Tenant-ID header: {x_tenant_id!r}")


async def get_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
) -> Optional[UUID]:
    if not x_user_id:
        return None
    try:
        return UUID(x_user_id)
    except ValueError:
        raise TenantRequiredError(f"Invalid X-User-ID header: {x_user_id!r}")


async def require_user_id(user_id: Optional[UUID] = Depends(get_user_id)) -> UUID:
    if user_id is None:
        raise TenantRequiredError("X-User-ID header is required")
    return user_id


# ---------------------------------------------------------------------------
# Redis client factory
# ---------------------------------------------------------------------------


async def get_redis_client() -> Optional[Redis]:
    """Get an async Redis client instance using connection pooling."""
    try:
        client = Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
        await client.ping()
        return client
    except Exception:
        logger.warning("Redis unavailable – caching disabled for this request")
        return None


# ---------------------------------------------------------------------------
# Cache service factory
# ---------------------------------------------------------------------------


async def get_cache_service(
    request: Request,
    redis_client: Optional[Redis] = Depends(get_redis_client),
):
    """Build a :class:`CacheService` backed by the shared Redis client.

    Counters fall back to the application's process-wide ``LocalCounters``.
    """
    from app.core.cache import CacheService

    return CacheService(
        redis_client=redis_client,
        local_counters=request.app.state.local_counters,
    )


# ---------------------------------------------------------------------------
# Repository factory functions (one per repository, each gets the shared db)
# ---------------------------------------------------------------------------


async def get_record_repo(
    db: AsyncSession = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    from app.repositories.record_repository import RecordRepository

    return RecordRepository(db, tenant_id)


async def get_workflow_repo(
    db: AsyncSession = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    from app.repositories.workflow_repository import WorkflowRepository

    return WorkflowRepository(db, tenant_id)


async def get_activity_repo(
    db: AsyncSession = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    from app.repositories.activity_repository import ActivityRepository

    return ActivityRepository(db, tenant_id)


async def get_import_job_repo(
    db: AsyncSession = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    from app.repositories.import_job_repository import ImportJobRepository

    return ImportJobRepository(db, tenant_id)


async def get_linkedin_repo(
    db: AsyncSession = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
):
    from app.repositories.linkedin_repository import LinkedInRepository

    return LinkedInRepository(db, tenant_id)


async def get_google_token_repo(db: AsyncSession = Depends(get_db)):
    from app.repositories.google_token_repository import GoogleTokenRepository

    return GoogleTokenRepository(db)


async def get_web_form_repo(db: AsyncSession = Depends(get_db)):
    from app.repositories.web_form_repository import WebFormRepository

    return WebFormRepository(db)


# ---------------------------------------------------------------------------
# Service factory functions
# ---------------------------------------------------------------------------


async def get_scoring_engine(
    db: AsyncSession = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
    cache=Depends(get_cache_service),
):
    """Build a :class:`LeadScoringEngine` bound to the caller's tenant."""
    from app.repositories.lead_repository import LeadRepository
    from app.repositories.scoring_rule_repository import ScoringRuleRepository
    from app.repositories.scoring_settings_repository import (
        ScoreHistoryRepository,
        ScoringSettingsRepository,
    )
    from app.services.lead_scoring import LeadScoringEngine

    return LeadScoringEngine(
        rule_repo=ScoringRuleRepository(db, tenant_id),
        settings_repo=ScoringSettingsRepository(db, tenant_id),
        history_repo=ScoreHistoryRepository(db, tenant_id),
        lead_repo=LeadRepository(db, tenant_id),
        cache=cache,
    )


async def get_workflow_service(
    repo=Depends(get_workflow_repo),
    user_id: Optional[UUID] = Depends(get_user_id),
):
    from app.services.workflow_service import WorkflowService

    return WorkflowService(repo, user_id=user_id)


async def get_data_import_service(
    record_repo=Depends(get_record_repo),
    job_repo=Depends(get_import_job_repo),
    user_id: Optional[UUID] = Depends(get_user_id),
):
    from app.services.data_import_service import DataImportService

    return DataImportService(record_repo, job_repo, user_id=user_id)


async def get_data_export_service(record_repo=Depends(get_record_repo)):
    from app.services.data_export_service import DataExportService

    return DataExportService(record_repo)


async def get_linkedin_service(
    linkedin_repo=Depends(get_linkedin_repo),
    activity_repo=Depends(get_activity_repo),
    cache=Depends(get_cache_service),
):
    from app.integrations.linkedin import LinkedInService

    return LinkedInService(linkedin_repo, activity_repo, cache=cache)


async def get_web_form_service(
    db: AsyncSession = Depends(get_db),
    form_repo=Depends(get_web_form_repo),
):
    """Public forms resolve their tenant from the form, not from a header."""
    from app.repositories.activity_repository import ActivityRepository
    from app.repositories.lead_repository import LeadRepository
    from app.services.web_form_service import WebFormService

    return WebFormService(
        form_repo,
        lead_repo_factory=lambda tenant_id: LeadRepository(db, tenant_id),
        activity_repo_factory=lambda tenant_id: ActivityRepository(db, tenant_id),
    )


# ---------------------------------------------------------------------------
# Google
# ---------------------------------------------------------------------------


async def get_google_token_service(
    token_repo=Depends(get_google_token_repo),
    user_id: UUID = Depends(require_user_id),
):
    from app.integrations.google.token_service import (
        GoogleOAuthSessionSource,
        GoogleTokenService,
    )

    return GoogleTokenService(GoogleOAuthSessionSource(token_repo, user_id))


async def get_google_client(token_service=Depends(get_google_token_service)):
    """Yield an API client; its HTTP connection pool is closed after the request."""
    from app.integrations.google.api_client import GoogleApiClient

    client = GoogleApiClient(token_service)
    try:
        yield client
    finally:
        await client.aclose()


async def get_gmail_service(client=Depends(get_google_client)):
    from app.integrations.google.gmail import GmailService

    return GmailService(client)


async def get_calendar_service(client=Depends(get_google_client)):
    from app.integrations.google.calendar import CalendarService

    return CalendarService(client)


async def get_drive_service(client=Depends(get_google_client)):
    from app.integrations.google.drive import DriveService

    return DriveService(client)


async def get_workflow_engine(
    db: AsyncSession = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
    user_id: Optional[UUID] = Depends(get_user_id),
    workflow_repo=Depends(get_workflow_repo),
    record_repo=Depends(get_record_repo),
    token_repo=Depends(get_google_token_repo),
    cache=Depends(get_cache_service),
):
    """Yield a workflow engine for the request.

    ``send_email`` actions go through the acting user's Gmail when that
    user has connected Google; otherwise the engine logs the email.
    """
    from app.integrations.google.api_client import GoogleApiClient
    from app.integrations.google.gmail import GmailService
    from app.integrations.google.token_service import (
        GoogleOAuthSessionSource,
        GoogleTokenService,
    )
    from app.repositories.activity_repository import NotificationRepository, TaskRepository
    from app.repositories.tenant_repository import TeamRepository
    from app.services.workflow_engine import WorkflowEngine

    google_client = None
    gmail = None
    if user_id is not None and await token_repo.get_by_user(user_id) is not None:
        google_client = GoogleApiClient(
            GoogleTokenService(GoogleOAuthSessionSource(token_repo, user_id))
        )
        gmail = GmailService(google_client)

    try:
        yield WorkflowEngine(
            workflow_repo=workflow_repo,
            record_repo=record_repo,
            task_repo=TaskRepository(db, tenant_id),
            notification_repo=NotificationRepository(db, tenant_id),
            team_repo=TeamRepository(db, tenant_id),
            cache=cache,
            gmail=gmail,
        )
    finally:
        if google_client is not None:
            await google_client.aclose()


# ---------------------------------------------------------------------------
# Inbound webhooks
# ---------------------------------------------------------------------------


async def get_tenant_repo(db: AsyncSession = Depends(get_db)):
    from app.repositories.tenant_repository import TenantRepository

    return TenantRepository(db)


async def get_calcom_processor_factory(db: AsyncSession = Depends(get_db)):
    """Build a processor once the webhook's tenant and organiser are verified."""
    from app.integrations.calcom import CalcomWebhookProcessor
    from app.repositories.activity_repository import ActivityRepository, NotificationRepository
    from app.repositories.booking_repository import BookingRepository

    def build(tenant_id: UUID, user_id: UUID) -> CalcomWebhookProcessor:
        return CalcomWebhookProcessor(
            BookingRepository(db, tenant_id),
            ActivityRepository(db, tenant_id),
            NotificationRepository(db, tenant_id),
            user_id,
        )

    return build


async def get_inbound_webhook_service(
    db: AsyncSession = Depends(get_db),
    tenant_id: UUID = Depends(get_tenant_id),
    user_id: Optional[UUID] = Depends(get_user_id),
):
    from app.repositories.inbound_webhook_repository import InboundWebhookRepository
    from app.services.inbound_webhook_service import InboundWebhookService

    return InboundWebhookService(InboundWebhookRepository(db, tenant_id), user_id=user_id)


async def get_inbound_webhook_processor(db: AsyncSession = Depends(get_db)):
    """The receiving endpoint resolves its tenant from the webhook, not from a header."""
    from app.repositories.inbound_webhook_repository import InboundEndpointRepository
    from app.repositories.record_repository import RecordRepository
    from app.services.inbound_webhook_service import InboundWebhookProcessor

    return InboundWebhookProcessor(
        InboundEndpointRepository(db),
        record_repo_factory=lambda tenant_id: RecordRepository(db, tenant_id),
    )
