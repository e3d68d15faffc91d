from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class PublicFormField(BaseModel):
    id: UUID
    field_type: str
    label: str
    name: str
    placeholder: Optional[str] = None
    is_required: bool
    options: Optional[Any] = None


class PublicFormOut(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    submit_button_text: str
    success_message: str
    redirect_url: Optional[str] = None
    honeypot_enabled: bool
    fields: List[PublicFormField] = Field(default_factory=list)


class UtmParams(BaseModel):
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None


class FormViewRequest(BaseModel):
    session_id: Optional[str] = None
    page_url: Optional[str] = None
    referrer_url: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    view_type: str = Field("impression", pattern=r"^(impression|interaction|abandonment)$")


class FormSubmitRequest(BaseModel):
    data: Dict[str, Any]
    utm: UtmParams = Field(default_factory=UtmParams)
    page_url: Optional[str] = None
    referrer_url: Optional[str] = None


class FormSubmitResponse(BaseModel):
    success: bool
    submission_id: Optional[UUID] = None
    lead_id: Optional[UUID] = None
    redirect_url: Optional[str] = None
    success_message: Optional[str] = None
    error: Optional[str] = None
