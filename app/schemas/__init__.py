"""Pydantic schemas package – re-exports for convenience."""

# Common enums
from app.schemas.common import (
    ScoreCategory as ScoreCategory,
    ScoreLabel as ScoreLabel,
    RuleOperator as RuleOperator,
    ConditionOperator as ConditionOperator,
    SuccessResponse as SuccessResponse,
    ErrorResponse as ErrorResponse,
)

# Lead scoring schemas
from app.schemas.scoring import (
    ScoringRuleCreate as ScoringRuleCreate,
    ScoringRuleUpdate as ScoringRuleUpdate,
    ScoringRuleOut as ScoringRuleOut,
    ScoringSettings as ScoringSettings,
    LeadScoreOut as LeadScoreOut,
    CalculateScoreRequest as CalculateScoreRequest,
    RecalculateResponse as RecalculateResponse,
    ScoreHistoryOut as ScoreHistoryOut,
)

# Workflow schemas
from app.schemas.workflow import (
    WorkflowCreate as WorkflowCreate,
    WorkflowUpdate as WorkflowUpdate,
    WorkflowToggle as WorkflowToggle,
    WorkflowDuplicate as WorkflowDuplicate,
    WorkflowRunRequest as WorkflowRunRequest,
    WorkflowTriggerRequest as WorkflowTriggerRequest,
    WorkflowRunResponse as WorkflowRunResponse,
    WorkflowOut as WorkflowOut,
    ExecutionOut as ExecutionOut,
    ExecutionDetailOut as ExecutionDetailOut,
    ExecutionStats as ExecutionStats,
)

# Data import/export schemas
from app.schemas.data import (
    DuplicateHandling as DuplicateHandling,
    FieldMappingSchema as FieldMappingSchema,
    ImportPreviewOut as ImportPreviewOut,
    ImportResultOut as ImportResultOut,
    ExportRequest as ExportRequest,
)

# Integration schemas
from app.schemas.calcom import (
    CalcomWebhookEvent as CalcomWebhookEvent,
    CalcomWebhookResponse as CalcomWebhookResponse,
    CalcomWebhookSecretOut as CalcomWebhookSecretOut,
)
from app.schemas.linkedin import (
    ProfileLookupRequest as ProfileLookupRequest,
    ProfileLookupOut as ProfileLookupOut,
    SaveProfileRequest as SaveProfileRequest,
    LinkedInProfileOut as LinkedInProfileOut,
    LogActivityRequest as LogActivityRequest,
    LinkedInActivityOut as LinkedInActivityOut,
    InMailRequest as InMailRequest,
    InMailResponse as InMailResponse,
)
from app.schemas.google import (
    TokenStatus as TokenStatus,
    GoogleConnectRequest as GoogleConnectRequest,
    SendEmailRequest as SendEmailRequest,
    CreateEventRequest as CreateEventRequest,
    UpdateEventRequest as UpdateEventRequest,
    CreateFolderRequest as CreateFolderRequest,
    RenameFileRequest as RenameFileRequest,
)

# Web form schemas
from app.schemas.web_form import (
    PublicFormOut as PublicFormOut,
    FormViewRequest as FormViewRequest,
    FormSubmitRequest as FormSubmitRequest,
    FormSubmitResponse as FormSubmitResponse,
)

# Inbound webhook schemas
from app.schemas.inbound_webhook import (
    InboundWebhookCreate as InboundWebhookCreate,
    InboundWebhookUpdate as InboundWebhookUpdate,
    InboundWebhookOut as InboundWebhookOut,
    InboundWebhookWithCredentials as InboundWebhookWithCredentials,
    InboundWebhookLogOut as InboundWebhookLogOut,
    InboundWebhookResult as InboundWebhookResult,
)
