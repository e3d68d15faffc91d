from app.models.base import Base
from app.models.tenant import Tenant, User, TeamMember
from app.models.lead import Lead
from app.models.contact import Contact
from app.models.account import Account
from app.models.deal import Deal
from app.models.activity import Activity
from app.models.task import Task
from app.models.notification import Notification
from app.models.scoring_rule import LeadScoringRule
from app.models.scoring_settings import LeadScoringSettings, LeadScoreHistory
from app.models.workflow import (
    Workflow,
    WorkflowCondition,
    WorkflowAction,
    WorkflowExecution,
    WorkflowActionLog,
    WorkflowRecordRun,
)
from app.models.booking import Booking
from app.models.google_token import GoogleToken
from app.models.linkedin import LinkedInProfile, LinkedInActivity
from app.models.web_form import WebForm, WebFormField, WebFormSubmission, WebFormView
from app.models.import_job import ImportJob
from app.models.inbound_webhook import InboundWebhook, InboundWebhookLog

__all__ = [
    "Base",
    "Tenant",
    "User",
    "TeamMember",
    "Lead",
    "Contact",
    "Account",
    "Deal",
    "Activity",
    "Task",
    "Notification",
    "LeadScoringRule",
    "LeadScoringSettings",
    "LeadScoreHistory",
    "Workflow",
    "WorkflowCondition",
    "WorkflowAction",
    "WorkflowExecution",
    "WorkflowActionLog",
    "WorkflowRecordRun",
    "Booking",
    "GoogleToken",
    "LinkedInProfile",
    "LinkedInActivity",
    "WebForm",
    "WebFormField",
    "WebFormSubmission",
    "WebFormView",
    "ImportJob",
    "InboundWebhook",
    "InboundWebhookLog",
]
