from typing import Optional


class CRMError(Exception):
    """Base class for all CRM domain exceptions.

    Every custom exception in this module inherits from here so that a
    single ``except CRMError`` clause can catch any domain error.
    """

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(detail)


class TenantRequiredError(CRMError):
    """Raised when a tenant-scoped operation is attempted without a tenant."""

    def __init__(self, detail: str = "X-Tenant-ID header is required"):
        super().__init__(detail)


class RecordNotFoundError(CRMError):
    """Raised when a requested CRM record does not exist in the tenant."""

    def __init__(self, detail: str = "Record not found"):
        super().__init__(detail)


class LeadNotFoundError(RecordNotFoundError):
    def __init__(self, detail: str = "Lead not found"):
        super().__init__(detail)


class ScoringRuleNotFoundError(RecordNotFoundError):
    def __init__(self, detail: str = "Scoring rule not found"):
        super().__init__(detail)


class WorkflowNotFoundError(RecordNotFoundError):
    def __init__(self, detail: str = "Workflow not found"):
        super().__init__(detail)


class ExecutionNotFoundError(RecordNotFoundError):
    def __init__(self, detail: str = "Workflow execution not found"):
        super().__init__(detail)


class FormNotFoundError(RecordNotFoundError):
    def __init__(self, detail: str = "Form not found or not active"):
        super().__init__(detail)


class InboundWebhookNotFoundError(RecordNotFoundError):
    def __init__(self, detail: str = "Inbound webhook not found"):
        super().__init__(detail)



class UnknownEntityTypeError(CRMError):
    """Raised when an entity type outside lead/contact/account/deal is used."""

    def __init__(self, detail: str = "Unknown entity type"):
        super().__init__(detail)


class UnknownFieldError(CRMError):
    """Raised when a field name is not in the entity's field allowlist.

    Rules and workflow conditions are validated against the allowlist
    when they are written, so this surfaces as a 422 to API callers.
    """

    def __init__(self, detail: str = "Unknown field"):
        super().__init__(detail)


class InvalidImportFileError(CRMError):
    """Raised when an uploaded import file cannot be parsed."""

    def __init__(self, detail: str = "Unsupported import file"):
        super().__init__(detail)


class WorkflowPersistenceError(CRMError):
    """Raised when a workflow and its conditions/actions cannot be saved atomically."""

    def __init__(self, detail: str = "Failed to save workflow"):
        super().__init__(detail)


class WebhookSignatureError(CRMError):
    """Raised when an inbound webhook signature does not match."""

    def __init__(self, detail: str = "Invalid webhook signature"):
        super().__init__(detail)


class WebhookPayloadError(CRMError):
    """Raised for malformed inbound webhook requests."""

    def __init__(self, detail: str = "Invalid webhook payload"):
        super().__init__(detail)


class WebhookProcessingError(CRMError):
    """Raised when an authenticated inbound webhook could not be written to the CRM.

    The request is still logged against the webhook before this is raised.
    """

    def __init__(self, detail: str = "Webhook could not be processed"):
        super().__init__(detail)



class TokenError(CRMError):
    """Google OAuth token could not be obtained.

    ``error_type`` is one of ``no_session``, ``no_refresh_token`` or
    ``refresh_failed``.  All of them require the user to sign in with
    Google again.
    """

    def __init__(
        self,
        error_type: str,
        detail: str,
        requires_reauth: bool = True,
    ):
        self.error_type = error_type
        self.requires_reauth = requires_reauth
        super().__init__(detail)


class GoogleApiError(CRMError):
    """Classified failure from a Google REST API call."""

    def __init__(
        self,
        error_type: str,
        status: int,
        detail: str,
        retryable: bool = False,
    ):
        self.error_type = error_type
        self.status = status
        self.retryable = retryable
        super().__init__(detail)


class ExternalServiceError(CRMError):
    """Raised when a third-party service other than Google fails."""

    def __init__(self, detail: str = "External service unavailable", status: Optional[int] = None):
        self.status = status
        super().__init__(detail)
