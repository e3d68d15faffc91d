from sqlalchemy import Column, String, Text, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID, JSONB
from app.models.base import Base
from sqlalchemy.sql import func
from sqlalchemy import text


class LeadScoringSettings(Base):
    """Per-tenant label thresholds, auto-convert and decay configuration."""

    __tablename__ = "lead_scoring_settings"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, unique=True)
    cold_threshold = Column(Integer, nullable=False, server_default=text("0"))
    warm_threshold = Column(Integer, nullable=False, server_default=text("25"))
    hot_threshold = Column(Integer, nullable=False, server_default=text("50"))
    qualified_threshold = Column(Integer, nullable=False, server_default=text("75"))
    auto_convert_enabled = Column(Boolean, nullable=False, server_default=text("false"))
    auto_convert_threshold = Column(Integer, nullable=False, server_default=text("80"))
    score_decay_enabled = Column(Boolean, nullable=False, server_default=text("true"))
    score_decay_days = Column(Integer, nullable=False, server_default=text("30"))
    score_decay_percentage = Column(Integer, nullable=False, server_default=text("10"))
    qualification_framework = Column(String(20), nullable=False, server_default="bant")
    qualification_criteria = Column(JSONB)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class LeadScoreHistory(Base):
    __tablename__ = "lead_score_history"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    lead_id = Column(UUID(as_uuid=True), ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    previous_score = Column(Integer)
    new_score = Column(Integer, nullable=False)
    change_reason = Column(Text)
    triggered_by = Column(String(100))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
