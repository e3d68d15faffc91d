from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from app.models.base import Base
from sqlalchemy.sql import func


class Booking(Base):
    """Meeting booked through the scheduling provider (Cal.com)."""

    __tablename__ = "bookings"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    cal_booking_id = Column(String(100))
    cal_booking_uid = Column(String(255), unique=True)
    title = Column(String(500), nullable=False)
    description = Column(Text)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    timezone = Column(String(100), server_default="UTC")
    attendee_name = Column(String(255))
    attendee_email = Column(String(255))
    attendee_phone = Column(String(50))
    event_type = Column(String(255))
    event_type_slug = Column(String(255))
    location_type = Column(String(50))
    location_value = Column(Text)
    meeting_url = Column(Text)
    status = Column(String(20), nullable=False, server_default="confirmed")
    contact_id = Column(UUID(as_uuid=True), ForeignKey("contacts.id", ondelete="SET NULL"))
    lead_id = Column(UUID(as_uuid=True), ForeignKey("leads.id", ondelete="SET NULL"))
    deal_id = Column(UUID(as_uuid=True), ForeignKey("deals.id", ondelete="SET NULL"))
    cancelled_at = Column(DateTime(timezone=True))
    cancellation_reason = Column(Text)
    rescheduled_from_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id", ondelete="SET NULL"))
    rescheduled_to_id = Column(UUID(as_uuid=True), ForeignKey("bookings.id", ondelete="SET NULL"))
    metadata_ = Column("metadata", JSONB, server_default="{}")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (Index("ix_bookings_attendee_email", "attendee_email"),)
