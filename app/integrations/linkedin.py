"""LinkedIn prospecting helpers.

Profiles are looked up through RocketReach (when an API key is
configured) and cached in Redis.  LinkedIn itself has no public API for
messaging, so outreach is logged here and the user is handed a deep link.
"""

import hashlib
import json
import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote
from uuid import UUID

import httpx

from app.core.cache import CacheService, cache_key
from app.core.config import settings
from app.repositories.activity_repository import ActivityRepository
from app.repositories.linkedin_repository import LinkedInRepository

logger = logging.getLogger(__name__)

_PUBLIC_ID_RE = re.compile(r"linkedin\.com/in/([^/?]+)")

ACTIVITY_LABELS: Dict[str, str] = {
    "connection_request_sent": "Connection Request Sent",
    "connection_request_accepted": "Connection Accepted",
    "connection_request_declined": "Connection Declined",
    "inmail_sent": "InMail Sent",
    "inmail_opened": "InMail Opened",
    "inmail_replied": "InMail Reply",
    "profile_viewed": "Profile Viewed",
    "post_liked": "Post Liked",
    "post_commented": "Post Comment",
    "post_shared": "Post Shared",
    "message_sent": "Message Sent",
    "message_received": "Message Received",
}


@dataclass
class ProfileSearchParams:
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    title: Optional[str] = None


@dataclass
class ProfileLookupResult:
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
    raw_data: Dict[str, Any] = field(default_factory=dict)


def extract_public_identifier(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    match = _PUBLIC_ID_RE.search(url)
    return match.group(1) if match else None


def _search_terms(params: ProfileSearchParams, include_title: bool = True) -> str:
    parts = [params.first_name, params.last_name, params.company]
    if include_title:
        parts.append(params.title)
    return " ".join(p for p in parts if p)


def generate_profile_url(public_identifier: str) -> str:
    return f"https://www.linkedin.com/in/{public_identifier}"


def generate_search_url(params: ProfileSearchParams) -> str:
    return f"https://www.linkedin.com/search/results/people/?keywords={quote(_search_terms(params))}"


def generate_sales_nav_search_url(params: ProfileSearchParams) -> str:
    return f"https://www.linkedin.com/sales/search/people?query={quote(_search_terms(params))}"


def generate_inmail_url(public_identifier: str) -> str:
    return f"https://www.linkedin.com/messaging/compose/?recipient={public_identifier}"


def _result_from_rocketreach(data: Dict[str, Any]) -> ProfileLookupResult:
    location = None
    if data.get("city"):
        location = f"{data['city']}, {data.get('region') or ''} {data.get('country') or ''}".strip()
    return ProfileLookupResult(
        linkedin_url=data.get("linkedin_url"),
        public_identifier=extract_public_identifier(data.get("linkedin_url")),
        headline=data.get("current_title"),
        location=location,
        industry=data.get("industry"),
        profile_picture_url=data.get("profile_pic"),
        current_company=data.get("current_employer"),
        current_title=data.get("current_title"),
        email=data.get("email"),
        phone=data.get("phone"),
        raw_data=data,
    )


class LinkedInService:
    def __init__(
        self,
        linkedin_repo: LinkedInRepository,
        activity_repo: ActivityRepository,
        cache: Optional[CacheService] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        api_key: Optional[str] = None,
    ) -> None:
        self._repo = linkedin_repo
        self._activities = activity_repo
        self._cache = cache or CacheService()
        self._http = http_client
        self._api_key = api_key if api_key is not None else settings.ROCKETREACH_API_KEY

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _lookup_cache_key(self, params: ProfileSearchParams) -> str:
        digest = hashlib.sha256(
            json.dumps(asdict(params), sort_keys=True).lower().encode()
        ).hexdigest()[:32]
        return cache_key("linkedin", self._repo.tenant_id, digest)

    async def lookup_profile(self, params: ProfileSearchParams) -> Optional[ProfileLookupResult]:
        """Find a profile; ``None`` when nothing can be found or the provider fails."""
        key = self._lookup_cache_key(params)
        cached = await self._cache.get_json(key)
        if cached is not None:
            return ProfileLookupResult(**cached)

        if self._api_key:
            result = await self._lookup_via_rocketreach(params)
        else:
            result = self._construct_from_params(params)

        if result is not None:
            await self._cache.set_json(key, asdict(result), ttl=settings.LINKEDIN_LOOKUP_CACHE_TTL)
        return result

    async def _lookup_via_rocketreach(self, params: ProfileSearchParams) -> Optional[ProfileLookupResult]:
        query: Dict[str, str] = {}
        if params.first_name:
            query["name"] = f"{params.first_name} {params.last_name or ''}".strip()
        if params.email:
            query["email"] = params.email
        if params.company:
            query["current_employer"] = params.company
        if params.title:
            query["current_title"] = params.title

        try:
            if self._http is not None:
                response = await self._get(self._http, query)
            else:
                async with httpx.AsyncClient(timeout=settings.WEBHOOK_TIMEOUT_SECONDS) as client:
                    response = await self._get(client, query)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return _result_from_rocketreach(response.json())
        except (httpx.HTTPError, ValueError):
            logger.warning("RocketReach lookup failed", exc_info=True)
            return None

    async def _get(self, client: httpx.AsyncClient, query: Dict[str, str]) -> httpx.Response:
        return await client.get(
            settings.ROCKETREACH_API_URL,
            params=query,
            headers={"Api-Key": self._api_key, "Content-Type": "application/json"},
        )

    @staticmethod
    def _construct_from_params(params: ProfileSearchParams) -> Optional[ProfileLookupResult]:
        if not _search_terms(params, include_title=False):
            return None
        return ProfileLookupResult(
            headline=params.title,
            current_company=params.company,
            current_title=params.title,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def save_profile(
        self,
        profile: ProfileLookupResult,
        contact_id: Optional[UUID] = None,
        lead_id: Optional[UUID] = None,
    ) -> Any:
        row = await self._repo.upsert_profile(
            {
                "contact_id": contact_id,
                "lead_id": lead_id,
                "linkedin_id": profile.public_identifier,
                "linkedin_url": profile.linkedin_url,
                "public_identifier": profile.public_identifier,
                "headline": profile.headline,
                "location": profile.location,
                "industry": profile.industry,
                "profile_picture_url": profile.profile_picture_url,
                "current_company": profile.current_company,
                "current_title": profile.current_title,
                "raw_data": profile.raw_data,
                "last_synced_at": datetime.now(timezone.utc),
            }
        )
        await self._repo.commit()
        return row

    async def get_profile_for(
        self, contact_id: Optional[UUID] = None, lead_id: Optional[UUID] = None
    ) -> Any:
        return await self._repo.get_profile_for(contact_id=contact_id, lead_id=lead_id)

    async def get_activities(self, profile_id: UUID) -> List[Any]:
        """Outreach logged against a profile, newest first."""
        return await self._repo.list_activities(profile_id)

    async def log_activity(
        self,
        user_id: Optional[UUID],
        profile_id: UUID,
        activity_type: str,
        subject: Optional[str] = None,
        description: Optional[str] = None,
        inmail_subject: Optional[str] = None,
        inmail_body: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        commit: bool = True,
    ) -> Any:
        """Record LinkedIn outreach and mirror it onto the CRM timeline."""
        activity = await self._repo.add_activity(
            user_id=user_id,
            linkedin_profile_id=profile_id,
            activity_type=activity_type,
            subject=subject,
            description=description,
            inmail_subject=inmail_subject,
            inmail_body=inmail_body,
            metadata_=metadata or {},
        )

        profile = await self._repo.get_profile(profile_id)
        entity_id = (profile.contact_id or profile.lead_id) if profile else None
        if entity_id:
            await self._activities.create(
                user_id=user_id,
                entity_type="contact" if profile.contact_id else "lead",
                entity_id=entity_id,
                activity_type="linkedin",
                subject=subject or ACTIVITY_LABELS.get(activity_type, activity_type),
                description=description or inmail_body,
            )

        if commit:
            await self._repo.commit()
        return activity

    async def send_inmail(
        self,
        user_id: Optional[UUID],
        profile_id: UUID,
        subject: str,
        body: str,
    ) -> Dict[str, Any]:
        """Log an InMail and return the compose URL the user should open."""
        profile = await self._repo.get_profile(profile_id)
        if profile is None or not profile.public_identifier:
            logger.warning("Cannot prepare InMail: profile %s has no public identifier", profile_id)
            return {"success": False, "inmail_url": ""}

        await self.log_activity(
            user_id,
            profile_id,
            "inmail_sent",
            subject=subject,
            inmail_subject=subject,
            inmail_body=body,
        )
        return {"success": True, "inmail_url": generate_inmail_url(profile.public_identifier)}
