from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from app.models.base import Base
from sqlalchemy.sql import func
from sqlalchemy import text


class WebForm(Base):
    """Public lead-capture form, addressed by ``(tenant slug, form slug)``."""

    __tablename__ = "web_forms"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    slug = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, server_default="draft")
    submit_button_text = Column(String(100), nullable=False, server_default="Submit")
    success_message = Column(Text, nullable=False, server_default="Thank you for your submission!")
    redirect_url = Column(Text)
    honeypot_enabled = Column(Boolean, nullable=False, server_default=text("true"))
    default_owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    default_lead_source = Column(String(100), server_default="web_form")
    capture_utm_params = Column(Boolean, nullable=False, server_default=text("true"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    fields = relationship(
        "WebFormField",
        cascade="all, delete-orphan",
        order_by="WebFormField.position",
    )

    __table_args__ = (UniqueConstraint("tenant_id", "slug", name="uq_web_form_tenant_slug"),)


class WebFormField(Base):
    __tablename__ = "web_form_fields"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    form_id = Column(UUID(as_uuid=True), ForeignKey("web_forms.id", ondelete="CASCADE"), nullable=False, index=True)
    field_type = Column(String(20), nullable=False)
    label = Column(String(255), nullable=False)
    name = Column(String(100), nullable=False)
    placeholder = Column(String(255))
    is_required = Column(Boolean, nullable=False, server_default=text("false"))
    options = Column(JSONB)
    lead_field_mapping = Column(String(100))
    position = Column(Integer, nullable=False)


class WebFormSubmission(Base):
    __tablename__ = "web_form_submissions"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    form_id = Column(UUID(as_uuid=True), ForeignKey("web_forms.id", ondelete="CASCADE"), nullable=False, index=True)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    submission_data = Column(JSONB, nullable=False)
    lead_id = Column(UUID(as_uuid=True), ForeignKey("leads.id", ondelete="SET NULL"))
    converted_to_lead = Column(Boolean, nullable=False, server_default=text("false"))
    conversion_error = Column(Text)
    utm_source = Column(String(255))
    utm_medium = Column(String(255))
    utm_campaign = Column(String(255))
    utm_term = Column(String(255))
    utm_content = Column(String(255))
    ip_address = Column(String(100))
    user_agent = Column(Text)
    referrer_url = Column(Text)
    page_url = Column(Text)
    is_spam = Column(Boolean, nullable=False, server_default=text("false"))
    honeypot_triggered = Column(Boolean, nullable=False, server_default=text("false"))
    processed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class WebFormView(Base):
    __tablename__ = "web_form_views"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    form_id = Column(UUID(as_uuid=True), ForeignKey("web_forms.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(String(255))
    ip_address = Column(String(100))
    user_agent = Column(Text)
    referrer_url = Column(Text)
    page_url = Column(Text)
    utm_source = Column(String(255))
    utm_medium = Column(String(255))
    utm_campaign = Column(String(255))
    view_type = Column(String(20), server_default="impression")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
