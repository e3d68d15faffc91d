from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from app.models.base import Base
from sqlalchemy.sql import func
from sqlalchemy import text


class InboundWebhook(Base):
    """Receiving endpoint for an external system, addressed by ``endpoint_slug``.

    Incoming JSON is mapped through ``field_mappings`` onto one CRM record
    of ``target_entity``.
    """

    __tablename__ = "inbound_webhooks"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    name = Column(String(255), nullable=False)
    description = Column(Text)
    endpoint_slug = Column(String(64), nullable=False, unique=True)
    auth_type = Column(String(20), nullable=False, server_default="api_key")
    api_key = Column(String(255))
    hmac_secret = Column(String(255))
    hmac_header = Column(String(100), nullable=False, server_default="X-Webhook-Signature")
    hmac_algorithm = Column(String(10), nullable=False, server_default="sha256")
    target_entity = Column(String(20), nullable=False)
    field_mappings = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    default_values = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    create_if_not_exists = Column(Boolean, nullable=False, server_default=text("true"))
    update_if_exists = Column(Boolean, nullable=False, server_default=text("false"))
    lookup_field = Column(String(100))
    is_active = Column(Boolean, nullable=False, server_default=text("true"))
    last_received_at = Column(DateTime(timezone=True))
    success_count = Column(Integer, nullable=False, server_default="0")
    error_count = Column(Integer, nullable=False, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    logs = relationship("InboundWebhookLog", cascade="all, delete-orphan", passive_deletes=True)


class InboundWebhookLog(Base):
    __tablename__ = "inbound_webhook_logs"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    inbound_webhook_id = Column(
        UUID(as_uuid=True), ForeignKey("inbound_webhooks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    request_method = Column(String(10))
    request_headers = Column(JSONB)
    request_body = Column(JSONB)
    request_ip = Column(String(100))
    status = Column(String(20), nullable=False, server_default="received", index=True)
    entity_type = Column(String(20))
    entity_id = Column(UUID(as_uuid=True))
    operation = Column(String(10))
    error_message = Column(Text)
    received_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    processed_at = Column(DateTime(timezone=True))
