import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

from app.integrations.google.api_client import GoogleApiClient

logger = logging.getLogger(__name__)

EVENTS_PATH = "/calendar/v3/calendars/primary/events"
DEFAULT_WINDOW_DAYS = 30


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def build_event_body(
    summary: str,
    start: Any,
    end: Any,
    description: Optional[str] = None,
    location: Optional[str] = None,
    attendees: Sequence[str] = (),
    time_zone: Optional[str] = None,
    all_day: bool = False,
    add_meet: bool = False,
) -> Dict[str, Any]:
    """Build a Calendar API event resource."""
    if all_day:
        start_date = start.date() if isinstance(start, datetime) else start
        end_date = end.date() if isinstance(end, datetime) else end
        start_field: Dict[str, Any] = {"date": start_date.isoformat()}
        end_field: Dict[str, Any] = {"date": end_date.isoformat()}
    else:
        start_field = {"dateTime": _iso(start)}
        end_field = {"dateTime": _iso(end)}
        if time_zone:
            start_field["timeZone"] = time_zone
            end_field["timeZone"] = time_zone

    body: Dict[str, Any] = {"summary": summary, "start": start_field, "end": end_field}
    if description:
        body["description"] = description
    if location:
        body["location"] = location
    if attendees:
        body["attendees"] = [{"email": e} for e in attendees]
    if add_meet:
        body["conferenceData"] = {
            "createRequest": {
                "requestId": uuid4().hex,
                "conferenceSolutionKey": {"type": "hangoutsMeet"},
            }
        }
    return body


class CalendarService:
    def __init__(self, client: GoogleApiClient) -> None:
        self._client = client

    async def list_events(
        self,
        time_min: Optional[datetime] = None,
        time_max: Optional[datetime] = None,
        max_results: int = 50,
        query: Optional[str] = None,
        page_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Events in ``[time_min, time_max]``; defaults to the next 30 days."""
        now = datetime.now(timezone.utc)
        time_min = time_min or now
        time_max = time_max or now + timedelta(days=DEFAULT_WINDOW_DAYS)
        data = await self._client.get(
            EVENTS_PATH,
            params={
                "timeMin": _iso(time_min),
                "timeMax": _iso(time_max),
                "maxResults": max_results,
                "singleEvents": "true",
                "orderBy": "startTime",
                "q": query,
                "pageToken": page_token,
            },
        )
        return {"events": data.get("items") or [], "next_page_token": data.get("nextPageToken")}

    async def get_event(self, event_id: str) -> Dict[str, Any]:
        return await self._client.get(f"{EVENTS_PATH}/{event_id}")

    async def create_event(self, add_meet: bool = False, send_updates: str = "all", **event: Any) -> Dict[str, Any]:
        body = build_event_body(add_meet=add_meet, **event)
        return await self._client.post(
            EVENTS_PATH,
            body,
            params={
                "conferenceDataVersion": 1 if add_meet else None,
                "sendUpdates": send_updates,
            },
        )

    async def update_event(self, event_id: str, changes: Dict[str, Any], send_updates: str = "all") -> Dict[str, Any]:
        return await self._client.patch(
            f"{EVENTS_PATH}/{event_id}", changes, params={"sendUpdates": send_updates}
        )

    async def delete_event(self, event_id: str, send_updates: str = "all") -> None:
        await self._client.delete(f"{EVENTS_PATH}/{event_id}", params={"sendUpdates": send_updates})

    async def quick_add(self, text: str) -> Dict[str, Any]:
        return await self._client.post(f"{EVENTS_PATH}/quickAdd", params={"text": text})

    async def get_upcoming_events(self, days: int = 7, max_results: int = 10) -> List[Dict[str, Any]]:
        now = datetime.now(timezone.utc)
        result = await self.list_events(now, now + timedelta(days=days), max_results=max_results)
        return result["events"]

    async def get_events_for_date_range(self, start: date, end: date) -> List[Dict[str, Any]]:
        result = await self.list_events(
            datetime.combine(start, datetime.min.time(), tzinfo=timezone.utc),
            datetime.combine(end, datetime.max.time(), tzinfo=timezone.utc),
            max_results=250,
        )
        return result["events"]
