from sqlalchemy import Column, String, Text, Date, DateTime, CheckConstraint, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from app.models.base import Base
from sqlalchemy.sql import func


class Task(Base):
    __tablename__ = "tasks"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    entity_type = Column(String(50))
    entity_id = Column(UUID(as_uuid=True))
    subject = Column(String(500), nullable=False)
    description = Column(Text)
    task_type = Column(String(50), nullable=False, server_default="todo")
    priority = Column(String(20), nullable=False, server_default="medium")
    status = Column(String(20), nullable=False, server_default="not_started")
    due_date = Column(Date)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("task_type IN ('call', 'email', 'meeting', 'todo', 'follow_up')", name="ck_task_type"),
        CheckConstraint("priority IN ('low', 'medium', 'high')", name="ck_task_priority"),
    )
