"""Inbound Cal.com booking webhooks.

Verifies the HMAC signature, maps the booking lifecycle event onto a
``bookings`` row, and mirrors it into the CRM as an activity and an
in-app notification for the organiser.
"""

import hashlib
import hmac
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

from app.core.exceptions import WebhookPayloadError, WebhookSignatureError
from app.repositories.activity_repository import ActivityRepository, NotificationRepository
from app.repositories.booking_repository import BookingRepository
from app.schemas.calcom import CalcomBookingPayload, CalcomWebhookEvent

logger = logging.getLogger(__name__)

SUPPORTED_EVENTS = frozenset(
    {
        "BOOKING_CREATED",
        "BOOKING_CONFIRMED",
        "BOOKING_CANCELLED",
        "BOOKING_REJECTED",
        "BOOKING_RESCHEDULED",
        "BOOKING_COMPLETED",
    }
)

_ACTIVITY_SUBJECTS = {
    "BOOKING_CREATED": "Meeting Scheduled",
    "BOOKING_CONFIRMED": "Meeting Confirmed",
    "BOOKING_CANCELLED": "Meeting Cancelled",
    "BOOKING_REJECTED": "Meeting Cancelled",
    "BOOKING_RESCHEDULED": "Meeting Rescheduled",
    "BOOKING_COMPLETED": "Meeting Completed",
}

_NOTIFICATION_TITLES = {
    "BOOKING_CREATED": "New Meeting Scheduled",
    "BOOKING_CONFIRMED": "New Meeting Scheduled",
    "BOOKING_CANCELLED": "Meeting Cancelled",
    "BOOKING_REJECTED": "Meeting Cancelled",
    "BOOKING_RESCHEDULED": "Meeting Rescheduled",
    "BOOKING_COMPLETED": "Meeting Completed",
}


def verify_signature(raw_body: bytes, signature: str, secret: str) -> bool:
    """Check ``signature`` against the hex HMAC-SHA256 of *raw_body*."""
    expected = hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature.strip().lower())


def map_booking_status(trigger_event: str, payload_status: Optional[str] = None) -> str:
    if trigger_event == "BOOKING_CREATED":
        return "confirmed" if (payload_status or "").upper() == "ACCEPTED" else "pending"
    if trigger_event == "BOOKING_CONFIRMED":
        return "confirmed"
    if trigger_event in ("BOOKING_CANCELLED", "BOOKING_REJECTED"):
        return "cancelled"
    if trigger_event == "BOOKING_RESCHEDULED":
        return "rescheduled"
    if trigger_event == "BOOKING_COMPLETED":
        return "completed"
    return "pending"


def parse_location(location: Optional[str]) -> Tuple[str, str]:
    """Return ``(location_type, location_value)`` for a Cal.com location string."""
    if not location:
        return "video", ""
    text = location.lower()
    if "zoom" in text:
        return "video", "Zoom"
    if "meet" in text or "google" in text:
        return "video", "Google Meet"
    if "teams" in text:
        return "video", "Microsoft Teams"
    if "phone" in text or "call" in text:
        return "phone", location
    if "in person" in text or "office" in text:
        return "in_person", location
    return "other", location


class CalcomWebhookProcessor:
    """Persists one tenant's booking lifecycle events."""

    def __init__(
        self,
        booking_repo: BookingRepository,
        activity_repo: ActivityRepository,
        notification_repo: NotificationRepository,
        user_id: UUID,
    ) -> None:
        self._bookings = booking_repo
        self._activities = activity_repo
        self._notifications = notification_repo
        self._user_id = user_id

    def _booking_values(self, event: CalcomWebhookEvent) -> Dict[str, Any]:
        payload = event.payload
        attendee = payload.attendees[0] if payload.attendees else None
        location_type, location_value = parse_location(payload.location)
        return {
            "user_id": self._user_id,
            "cal_booking_id": str(payload.booking_id) if payload.booking_id is not None else None,
            "cal_booking_uid": payload.uid,
            "title": payload.title,
            "description": payload.description,
            "start_time": payload.start_time,
            "end_time": payload.end_time,
            "timezone": payload.timezone or (attendee.time_zone if attendee else None) or "UTC",
            "attendee_name": attendee.name if attendee else None,
            "attendee_email": attendee.email if attendee else None,
            "attendee_phone": attendee.phone if attendee else None,
            "event_type": payload.event_type.title if payload.event_type else None,
            "event_type_slug": payload.event_type.slug if payload.event_type else None,
            "location_type": location_type,
            "location_value": location_value,
            "meeting_url": payload.meeting_url,
            "status": map_booking_status(event.trigger_event, payload.status),
            "metadata_": payload.metadata or {},
        }

    async def _link_contact(self, payload: CalcomBookingPayload) -> Optional[UUID]:
        if not payload.attendees or not payload.attendees[0].email:
            return None
        return await self._bookings.find_contact_id_by_email(payload.attendees[0].email)

    async def process(self, event: CalcomWebhookEvent) -> Dict[str, Any]:
        trigger = event.trigger_event
        if trigger not in SUPPORTED_EVENTS:
            raise WebhookPayloadError(f"Unsupported event: {trigger}")

        payload = event.payload
        existing = await self._bookings.get_by_uid(payload.uid)

        if trigger in ("BOOKING_CREATED", "BOOKING_CONFIRMED"):
            values = self._booking_values(event)
            values["contact_id"] = await self._link_contact(payload)
            if existing is None:
                booking = await self._bookings.create(**values)
            else:
                booking = await self._bookings.update(existing, **values)

        elif trigger in ("BOOKING_CANCELLED", "BOOKING_REJECTED"):
            if existing is None:
                values = self._booking_values(event)
                values["contact_id"] = await self._link_contact(payload)
                existing = await self._bookings.create(**values)
            booking = await self._bookings.update(
                existing,
                status="cancelled",
                cancelled_at=datetime.now(timezone.utc),
                cancellation_reason=payload.cancellation_reason,
            )

        elif trigger == "BOOKING_RESCHEDULED":
            values = self._booking_values(event)
            values["status"] = "confirmed"
            values["contact_id"] = await self._link_contact(payload)
            previous = (
                await self._bookings.get_by_uid(payload.reschedule_uid)
                if payload.reschedule_uid
                else None
            )
            if existing is None:
                booking = await self._bookings.create(
                    rescheduled_from_id=previous.id if previous else None, **values
                )
            else:
                booking = await self._bookings.update(existing, **values)
            if previous is not None:
                await self._bookings.update(
                    previous, status="rescheduled", rescheduled_to_id=booking.id
                )

        else:  # BOOKING_COMPLETED
            if existing is None:
                values = self._booking_values(event)
                values["contact_id"] = await self._link_contact(payload)
                booking = await self._bookings.create(**values)
            else:
                booking = await self._bookings.update(existing, status="completed")

        await self._record_activity(trigger, booking)
        await self._notify(trigger, booking)
        await self._bookings.commit()

        logger.info("Processed Cal.com %s for booking %s", trigger, booking.id)
        return {"success": True, "booking_id": booking.id, "event": trigger}

    async def _record_activity(self, trigger: str, booking: Any) -> None:
        if booking.contact_id:
            entity_type, entity_id = "contact", booking.contact_id
        else:
            entity_type, entity_id = "booking", booking.id
        await self._activities.create(
            user_id=self._user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            activity_type="meeting",
            subject=f"{_ACTIVITY_SUBJECTS[trigger]}: {booking.title}",
            description=booking.cancellation_reason if trigger == "BOOKING_CANCELLED" else booking.description,
        )

    async def _notify(self, trigger: str, booking: Any) -> None:
        who = booking.attendee_name or booking.attendee_email or "A guest"
        when = booking.start_time.isoformat() if booking.start_time else ""
        await self._notifications.create_many(
            [
                {
                    "user_id": self._user_id,
                    "title": _NOTIFICATION_TITLES[trigger],
                    "body": f"{who} - {booking.title} ({when})",
                    "notification_type": "activity",
                    "category": "meeting_reminder",
                    "entity_type": "booking",
                    "entity_id": booking.id,
                    "action_url": f"/bookings/{booking.id}",
                    "metadata_": {"event": trigger, "cal_booking_uid": booking.cal_booking_uid},
                }
            ]
        )
