"""Request bodies for the Google mail/calendar/drive endpoints.

Responses are passed through from the Google APIs (or the parsed
dataclasses) and are not modelled here.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator
from typing_extensions import Self


class TokenStatus(BaseModel):
    connected: bool
    expires_at: Optional[float] = None
    expiring_soon: bool = False


class SendEmailRequest(BaseModel):
    to: List[EmailStr] = Field(..., min_length=1)
    subject: str
    body: str
    html: Optional[str] = None
    cc: List[EmailStr] = Field(default_factory=list)
    bcc: List[EmailStr] = Field(default_factory=list)
    thread_id: Optional[str] = None
    reply_to_message_id: Optional[str] = None


class CreateEventRequest(BaseModel):
    summary: str = Field(..., min_length=1)
    start: datetime
    end: datetime
    description: Optional[str] = None
    location: Optional[str] = None
    attendees: List[EmailStr] = Field(default_factory=list)
    time_zone: Optional[str] = None
    all_day: bool = False
    add_meet: bool = False

    @model_validator(mode="after")
    def validate_time_range(self) -> Self:
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self


class UpdateEventRequest(BaseModel):
    changes: Dict[str, Any] = Field(..., min_length=1)


class CreateFolderRequest(BaseModel):
    name: str = Field(..., min_length=1)
    parent_id: Optional[str] = None


class RenameFileRequest(BaseModel):
    name: str = Field(..., min_length=1)


class GoogleConnectRequest(BaseModel):
    """Tokens handed over by the OAuth sign-in flow."""

    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    expires_in: int = Field(3600, gt=0)
    scopes: List[str] = Field(default_factory=list)
    token_type: str = "Bearer"
