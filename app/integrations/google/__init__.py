"""Google Workspace integration: OAuth token lifecycle and REST wrappers."""

from app.integrations.google.api_client import GoogleApiClient, classify_google_api_error
from app.integrations.google.calendar import CalendarService
from app.integrations.google.drive import DriveService
from app.integrations.google.gmail import GmailService
from app.integrations.google.token_service import (
    GoogleOAuthSessionSource,
    GoogleSession,
    GoogleTokenService,
)

__all__ = [
    "CalendarService",
    "DriveService",
    "GmailService",
    "GoogleApiClient",
    "GoogleOAuthSessionSource",
    "GoogleSession",
    "GoogleTokenService",
    "classify_google_api_error",
]
