"""API-layer dependency functions.

Re-exports all dependency factories from ``app.dependencies`` so that
endpoint modules only need to import from ``app.api.deps``.
"""

from app.dependencies import (
    # Request identity
    get_tenant_id,
    get_user_id,
    require_user_id,
    # Repository factories
    get_record_repo,
    get_workflow_repo,
    get_activity_repo,
    get_import_job_repo,
    get_linkedin_repo,
    get_google_token_repo,
    get_web_form_repo,
    # Service factories
    get_scoring_engine,
    get_workflow_service,
    get_workflow_engine,
    get_data_import_service,
    get_data_export_service,
    get_linkedin_service,
    get_web_form_service,
    # Google
    get_google_token_service,
    get_google_client,
    get_gmail_service,
    get_calendar_service,
    get_drive_service,
    # Inbound webhooks
    get_calcom_processor_factory,
    get_tenant_repo,
    get_inbound_webhook_service,
    get_inbound_webhook_processor,
    # Redis
    get_redis_client,
    get_cache_service,
)

__all__ = [
    "get_tenant_id",
    "get_user_id",
    "require_user_id",
    "get_record_repo",
    "get_workflow_repo",
    "get_activity_repo",
    "get_import_job_repo",
    "get_linkedin_repo",
    "get_google_token_repo",
    "get_web_form_repo",
    "get_scoring_engine",
    "get_workflow_service",
    "get_workflow_engine",
    "get_data_import_service",
    "get_data_export_service",
    "get_linkedin_service",
    "get_web_form_service",
    "get_google_token_service",
    "get_google_client",
    "get_gmail_service",
    "get_calendar_service",
    "get_drive_service",
    "get_calcom_processor_factory",
    "get_tenant_repo",
    "get_inbound_webhook_service",
    "get_inbound_webhook_processor",
    "get_redis_client",
    "get_cache_service",
]
