"""Inbound webhook endpoint and request-log schemas."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.entity_fields import EntityType


class InboundAuthType(str, Enum):
    none = "none"
    api_key = "api_key"
    hmac = "hmac"


class HmacAlgorithm(str, Enum):
    sha256 = "sha256"
    sha1 = "sha1"


class InboundWebhookCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    auth_type: InboundAuthType = InboundAuthType.api_key
    hmac_header: str = Field("X-Webhook-Signature", min_length=1, max_length=100)
    hmac_algorithm: HmacAlgorithm = HmacAlgorithm.sha256
    target_entity: EntityType
    field_mappings: Dict[str, str] = Field(
        default_factory=dict,
        description="Target field -> dotted path into the request body",
    )
    default_values: Dict[str, Any] = Field(default_factory=dict)
    create_if_not_exists: bool = True
    update_if_exists: bool = False
    lookup_field: Optional[str] = None


class InboundWebhookUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    auth_type: Optional[InboundAuthType] = None
    hmac_header: Optional[str] = Field(None, min_length=1, max_length=100)
    hmac_algorithm: Optional[HmacAlgorithm] = None
    target_entity: Optional[EntityType] = None
    field_mappings: Optional[Dict[str, str]] = None
    default_values: Optional[Dict[str, Any]] = None
    create_if_not_exists: Optional[bool] = None
    update_if_exists: Optional[bool] = None
    lookup_field: Optional[str] = None
    is_active: Optional[bool] = None


class InboundWebhookOut(BaseModel):
    """Endpoint settings without credentials."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    endpoint_slug: str
    auth_type: str
    hmac_header: str
    hmac_algorithm: str
    target_entity: str
    field_mappings: Dict[str, str]
    default_values: Dict[str, Any]
    create_if_not_exists: bool
    update_if_exists: bool
    lookup_field: Optional[str] = None
    is_active: bool
    last_received_at: Optional[datetime] = None
    success_count: int = 0
    error_count: int = 0
    created_at: Optional[datetime] = None


class InboundWebhookWithCredentials(InboundWebhookOut):
    """Returned only on create and rotate, the one time credentials are shown."""

    api_key: Optional[str] = None
    hmac_secret: Optional[str] = None


class InboundWebhookLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    request_method: Optional[str] = None
    request_headers: Optional[Dict[str, Any]] = None
    request_body: Optional[Dict[str, Any]] = None
    request_ip: Optional[str] = None
    status: str
    entity_type: Optional[str] = None
    entity_id: Optional[UUID] = None
    operation: Optional[str] = None
    error_message: Optional[str] = None
    received_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None


class InboundWebhookResult(BaseModel):
    success: bool
    operation: Optional[str] = None
    entity_id: Optional[UUID] = None
