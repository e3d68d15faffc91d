from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    CheckConstraint,
    ARRAY,
)
from sqlalchemy.dialects.postgresql import UUID
from app.models.base import Base
from sqlalchemy.sql import func
from sqlalchemy import text


class LeadScoringRule(Base):
    """Tenant-configurable scoring rule.

    A rule matches when ``operator`` applied to the lead's ``field_name``
    and the comparison operand (``field_value`` or ``field_values``) is
    true; a match adds ``points`` to the rule's ``category``.  Defaults
    come from ``DEFAULT_SCORING_RULES`` when a tenant has none.
    """

    __tablename__ = "lead_scoring_rules"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    category = Column(String(20), nullable=False)
    field_name = Column(String(100), nullable=False)
    operator = Column(String(30), nullable=False)
    field_value = Column(Text)
    field_values = Column(ARRAY(String))
    points = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, server_default=text("true"))
    priority = Column(Integer, nullable=False, server_default=text("0"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            "category IN ('demographic', 'behavioral', 'engagement', 'fit')",
            name="ck_scoring_rule_category",
        ),
    )
