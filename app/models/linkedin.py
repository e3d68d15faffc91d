from sqlalchemy import Column, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from app.models.base import Base
from sqlalchemy.sql import func


class LinkedInProfile(Base):
    __tablename__ = "linkedin_profiles"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    contact_id = Column(UUID(as_uuid=True), ForeignKey("contacts.id", ondelete="CASCADE"))
    lead_id = Column(UUID(as_uuid=True), ForeignKey("leads.id", ondelete="CASCADE"))
    linkedin_id = Column(String(255))
    linkedin_url = Column(Text)
    public_identifier = Column(String(255))
    headline = Column(Text)
    summary = Column(Text)
    location = Column(String(255))
    industry = Column(String(255))
    profile_picture_url = Column(Text)
    current_company = Column(String(255))
    current_title = Column(String(255))
    last_synced_at = Column(DateTime(timezone=True))
    raw_data = Column(JSONB, server_default="{}")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("tenant_id", "linkedin_id", name="uq_linkedin_profile_tenant"),
    )


class LinkedInActivity(Base):
    __tablename__ = "linkedin_activities"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    linkedin_profile_id = Column(
        UUID(as_uuid=True), ForeignKey("linkedin_profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    activity_type = Column(String(50), nullable=False)
    subject = Column(String(500))
    description = Column(Text)
    inmail_subject = Column(String(500))
    inmail_body = Column(Text)
    metadata_ = Column("metadata", JSONB, server_default="{}")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
