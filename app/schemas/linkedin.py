from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing_extensions import Self


class LinkedInActivityType(str, Enum):
    connection_request_sent = "connection_request_sent"
    connection_request_accepted = "connection_request_accepted"
    connection_request_declined = "connection_request_declined"
    inmail_sent = "inmail_sent"
    inmail_opened = "inmail_opened"
    inmail_replied = "inmail_replied"
    profile_viewed = "profile_viewed"
    post_liked = "post_liked"
    post_commented = "post_commented"
    post_shared = "post_shared"
    message_sent = "message_sent"
    message_received = "message_received"


class ProfileLookupRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    title: Optional[str] = None


class ProfileLookupOut(BaseModel):
    linkedin_url: Optional[str] = None
    public_identifier: Optional[str] = None
    headline: Optional[str] = None
    location: Optional[str] = None
    industry: Optional[str] = None
    profile_picture_url: Optional[str] = None
    current_company: Optional[str] = None
    current_title: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    search_url: Optional[str] = None
    sales_nav_search_url: Optional[str] = None


class SaveProfileRequest(BaseModel):
    """Persist a looked-up profile against exactly one contact or lead."""

    profile: ProfileLookupOut
    contact_id: Optional[UUID] = None
    lead_id: Optional[UUID] = None

    @model_validator(mode="after")
    def validate_link_target(self) -> Self:
        if (self.contact_id is None) == (self.lead_id is None):
            raise ValueError("Exactly one of contact_id or lead_id is required")
        return self


class LinkedInProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    contact_id: Optional[UUID] = None
    lead_id: Optional[UUID] = None
    linkedin_url: Optional[str] = None
    public_identifier: Optional[str] = None
    headline: Optional[str] = None
    location: Optional[str] = None
    industry: Optional[str] = None
    current_company: Optional[str] = None
    current_title: Optional[str] = None
    last_synced_at: Optional[datetime] = None


class LogActivityRequest(BaseModel):
    activity_type: LinkedInActivityType
    subject: Optional[str] = None
    description: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class LinkedInActivityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    linkedin_profile_id: UUID
    activity_type: str
    subject: Optional[str] = None
    description: Optional[str] = None
    inmail_subject: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="metadata_")
    created_at: Optional[datetime] = None


class InMailRequest(BaseModel):
    subject: str = Field(..., min_length=1, max_length=500)
    body: str = Field(..., min_length=1)


class InMailResponse(BaseModel):
    success: bool
    inmail_url: str
