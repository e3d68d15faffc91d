from sqlalchemy import (
    Column,
    String,
    Integer,
    DateTime,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from app.models.base import Base
from sqlalchemy.sql import func
from sqlalchemy import text


class Lead(Base):
    """Prospect record scored by the lead scoring engine.

    ``score`` is the capped 0–100 total; the four ``*_score`` columns hold
    the per-category breakdown from the last calculation and
    ``score_label`` the threshold label (cold/warm/hot/qualified).
    """

    __tablename__ = "leads"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100))
    email = Column(String(255))
    phone = Column(String(50))
    company = Column(String(255))
    title = Column(String(255))
    source = Column(String(100))
    status = Column(String(50), nullable=False, server_default="new")
    industry = Column(String(100))
    company_size = Column(String(50))
    annual_revenue = Column(String(100))
    activity_count = Column(Integer, nullable=False, server_default=text("0"))
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))

    score = Column(Integer, nullable=False, server_default=text("0"))
    score_label = Column(String(20), nullable=False, server_default="cold")
    demographic_score = Column(Integer, nullable=False, server_default=text("0"))
    behavioral_score = Column(Integer, nullable=False, server_default=text("0"))
    engagement_score = Column(Integer, nullable=False, server_default=text("0"))
    fit_score = Column(Integer, nullable=False, server_default=text("0"))
    score_breakdown = Column(JSONB)
    last_score_update = Column(DateTime(timezone=True))
    last_activity_at = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("score >= 0 AND score <= 100", name="ck_lead_score_range"),
        CheckConstraint(
            "status IN ('new', 'contacted', 'qualified', 'unqualified', 'converted')",
            name="ck_lead_status",
        ),
        CheckConstraint(
            "score_label IN ('cold', 'warm', 'hot', 'qualified')",
            name="ck_lead_score_label",
        ),
        Index("ix_leads_tenant_email", "tenant_id", "email"),
        Index("ix_leads_tenant_status", "tenant_id", "status"),
    )
