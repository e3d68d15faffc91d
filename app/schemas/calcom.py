"""Cal.com webhook payloads (camelCase on the wire)."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _CalcomModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class CalcomAttendee(_CalcomModel):
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    time_zone: Optional[str] = Field(None, alias="timeZone")


class CalcomOrganizer(_CalcomModel):
    email: Optional[str] = None
    name: Optional[str] = None
    time_zone: Optional[str] = Field(None, alias="timeZone")


class CalcomEventType(_CalcomModel):
    id: Optional[int] = None
    slug: Optional[str] = None
    title: Optional[str] = None
    length: Optional[int] = None


class CalcomBookingPayload(_CalcomModel):
    uid: str
    booking_id: Optional[int] = Field(None, alias="bookingId")
    title: str
    description: Optional[str] = None
    start_time: datetime = Field(..., alias="startTime")
    end_time: datetime = Field(..., alias="endTime")
    timezone: Optional[str] = None
    status: Optional[str] = None
    attendees: List[CalcomAttendee] = Field(default_factory=list)
    organizer: Optional[CalcomOrganizer] = None
    event_type: Optional[CalcomEventType] = Field(None, alias="eventType")
    location: Optional[str] = None
    meeting_url: Optional[str] = Field(None, alias="meetingUrl")
    metadata: Optional[Dict[str, Any]] = None
    reschedule_uid: Optional[str] = Field(None, alias="rescheduleUid")
    cancellation_reason: Optional[str] = Field(None, alias="cancelledReason")


class CalcomWebhookEvent(_CalcomModel):
    trigger_event: str = Field(..., alias="triggerEvent")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    payload: CalcomBookingPayload


class CalcomWebhookResponse(BaseModel):
    success: bool = True
    booking_id: Optional[str] = None
    event: str


class CalcomWebhookSecretOut(BaseModel):
    """Paste ``secret`` into the Cal.com webhook's signing secret field."""

    secret: str
