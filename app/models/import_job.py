from sqlalchemy import Column, String, Integer, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID, JSONB
from app.models.base import Base
from sqlalchemy.sql import func
from sqlalchemy import text


class ImportJob(Base):
    __tablename__ = "import_jobs"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    entity_type = Column(String(20), nullable=False)
    file_name = Column(String(255), nullable=False)
    total_rows = Column(Integer, nullable=False, server_default=text("0"))
    processed_rows = Column(Integer, nullable=False, server_default=text("0"))
    success_count = Column(Integer, nullable=False, server_default=text("0"))
    failure_count = Column(Integer, nullable=False, server_default=text("0"))
    duplicate_count = Column(Integer, nullable=False, server_default=text("0"))
    status = Column(String(20), nullable=False, server_default="pending")
    config = Column(JSONB, nullable=False, server_default="{}")
    errors = Column(JSONB, nullable=False, server_default="[]")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True))
