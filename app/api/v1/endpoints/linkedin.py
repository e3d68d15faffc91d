from dataclasses import asdict
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.core.exceptions import RecordNotFoundError
from app.integrations.linkedin import (
    LinkedInService,
    ProfileLookupResult,
    ProfileSearchParams,
    generate_sales_nav_search_url,
    generate_search_url,
)
from app.schemas.linkedin import (
    InMailRequest,
    InMailResponse,
    LinkedInActivityOut,
    LinkedInProfileOut,
    LogActivityRequest,
    ProfileLookupOut,
    ProfileLookupRequest,
    SaveProfileRequest,
)
from app.api.deps import get_linkedin_service, get_user_id

router = APIRouter(prefix="/linkedin", tags=["LinkedIn"])


@router.post("/lookup", response_model=ProfileLookupOut)
async def lookup_profile(
    body: ProfileLookupRequest,
    service: LinkedInService = Depends(get_linkedin_service),
) -> ProfileLookupOut:
    """Best-effort profile lookup; search links are always returned."""
    params = ProfileSearchParams(**body.model_dump())
    result = await service.lookup_profile(params)
    data = asdict(result) if result is not None else {}
    data.pop("raw_data", None)
    return ProfileLookupOut(
        **data,
        search_url=generate_search_url(params),
        sales_nav_search_url=generate_sales_nav_search_url(params),
    )


@router.post("/profiles", response_model=LinkedInProfileOut, status_code=201)
async def save_profile(
    body: SaveProfileRequest,
    service: LinkedInService = Depends(get_linkedin_service),
) -> LinkedInProfileOut:
    profile = ProfileLookupResult(
        **body.profile.model_dump(exclude={"search_url", "sales_nav_search_url"})
    )
    return await service.save_profile(profile, contact_id=body.contact_id, lead_id=body.lead_id)


@router.get("/profiles", response_model=Optional[LinkedInProfileOut])
async def get_linked_profile(
    contact_id: Optional[UUID] = Query(None),
    lead_id: Optional[UUID] = Query(None),
    service: LinkedInService = Depends(get_linkedin_service),
) -> Optional[LinkedInProfileOut]:
    """The saved profile for a contact or lead, or ``null``."""
    return await service.get_profile_for(contact_id=contact_id, lead_id=lead_id)


@router.get("/profiles/{profile_id}/activities", response_model=List[LinkedInActivityOut])
async def list_activities(
    profile_id: UUID,
    service: LinkedInService = Depends(get_linkedin_service),
) -> List[LinkedInActivityOut]:
    return await service.get_activities(profile_id)


@router.post(
    "/profiles/{profile_id}/activities",
    response_model=LinkedInActivityOut,
    status_code=201,
)
async def log_activity(
    profile_id: UUID,
    body: LogActivityRequest,
    user_id: Optional[UUID] = Depends(get_user_id),
    service: LinkedInService = Depends(get_linkedin_service),
) -> LinkedInActivityOut:
    return await service.log_activity(
        user_id,
        profile_id,
        body.activity_type.value,
        subject=body.subject,
        description=body.description,
        metadata=body.metadata,
    )


@router.post("/profiles/{profile_id}/inmail", response_model=InMailResponse)
async def send_inmail(
    profile_id: UUID,
    body: InMailRequest,
    user_id: Optional[UUID] = Depends(get_user_id),
    service: LinkedInService = Depends(get_linkedin_service),
) -> InMailResponse:
    """Log the InMail and return the compose link for the user to open."""
    result = await service.send_inmail(user_id, profile_id, body.subject, body.body)
    if not result["success"]:
        raise RecordNotFoundError(f"LinkedIn profile {profile_id} has no public identifier")
    return InMailResponse(**result)
