"""Repository layer – all database access goes through here.

Repositories encapsulate SQLAlchemy queries so that the service layer
only contains business logic.  Tenant-owned tables are reached through
``TenantScopedRepository`` subclasses bound to one tenant.
"""

from app.repositories.activity_repository import (
    ActivityRepository,
    NotificationRepository,
    TaskRepository,
)
from app.repositories.booking_repository import BookingRepository
from app.repositories.google_token_repository import GoogleTokenRepository
from app.repositories.import_job_repository import ImportJobRepository
from app.repositories.lead_repository import LeadRepository
from app.repositories.linkedin_repository import LinkedInRepository
from app.repositories.record_repository import RecordRepository
from app.repositories.scoring_rule_repository import ScoringRuleRepository
from app.repositories.scoring_settings_repository import (
    ScoreHistoryRepository,
    ScoringSettingsRepository,
)
from app.repositories.tenant_repository import TeamRepository, TenantRepository
from app.repositories.web_form_repository import WebFormRepository
from app.repositories.workflow_repository import WorkflowRepository

__all__ = [
    "ActivityRepository",
    "BookingRepository",
    "GoogleTokenRepository",
    "ImportJobRepository",
    "LeadRepository",
    "LinkedInRepository",
    "NotificationRepository",
    "RecordRepository",
    "ScoreHistoryRepository",
    "ScoringRuleRepository",
    "ScoringSettingsRepository",
    "TaskRepository",
    "TeamRepository",
    "TenantRepository",
    "WebFormRepository",
    "WorkflowRepository",
]
