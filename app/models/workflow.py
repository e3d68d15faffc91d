from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    UniqueConstraint,
    ARRAY,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from app.models.base import Base
from sqlalchemy.sql import func
from sqlalchemy import text


class Workflow(Base):
    """Automation definition: trigger + ordered conditions + ordered actions."""

    __tablename__ = "workflows"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    trigger_type = Column(String(50), nullable=False)
    trigger_config = Column(JSONB, nullable=False, server_default="{}")
    entity_type = Column(String(50), nullable=False)
    is_active = Column(Boolean, nullable=False, server_default=text("true"))
    run_once_per_record = Column(Boolean, nullable=False, server_default=text("false"))
    position = Column(Integer, nullable=False, server_default=text("0"))
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    conditions = relationship(
        "WorkflowCondition",
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="WorkflowCondition.position",
    )
    actions = relationship(
        "WorkflowAction",
        back_populates="workflow",
        cascade="all, delete-orphan",
        order_by="WorkflowAction.position",
    )

    __table_args__ = (
        Index("ix_workflows_tenant_active", "tenant_id", "is_active"),
        Index("ix_workflows_trigger", "tenant_id", "trigger_type", "entity_type"),
    )


class WorkflowCondition(Base):
    __tablename__ = "workflow_conditions"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    workflow_id = Column(UUID(as_uuid=True), ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False, index=True)
    condition_group = Column(Integer, nullable=False, server_default=text("0"))
    field_name = Column(String(100), nullable=False)
    operator = Column(String(30), nullable=False)
    field_value = Column(Text)
    field_values = Column(ARRAY(String))
    logical_operator = Column(String(3), nullable=False, server_default="AND")
    position = Column(Integer, nullable=False, server_default=text("0"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    workflow = relationship("Workflow", back_populates="conditions")


class WorkflowAction(Base):
    __tablename__ = "workflow_actions"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    workflow_id = Column(UUID(as_uuid=True), ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False, index=True)
    action_type = Column(String(50), nullable=False)
    action_config = Column(JSONB, nullable=False, server_default="{}")
    position = Column(Integer, nullable=False, server_default=text("0"))
    delay_minutes = Column(Integer, nullable=False, server_default=text("0"))
    stop_on_error = Column(Boolean, nullable=False, server_default=text("false"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    workflow = relationship("Workflow", back_populates="actions")


class WorkflowExecution(Base):
    __tablename__ = "workflow_executions"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    workflow_id = Column(UUID(as_uuid=True), ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False, index=True)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(UUID(as_uuid=True), nullable=False)
    trigger_event = Column(String(50), nullable=False)
    trigger_data = Column(JSONB)
    status = Column(String(20), nullable=False, server_default="pending")
    started_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    error_message = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    action_logs = relationship(
        "WorkflowActionLog",
        cascade="all, delete-orphan",
        order_by="WorkflowActionLog.created_at",
    )


class WorkflowActionLog(Base):
    __tablename__ = "workflow_action_logs"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    execution_id = Column(UUID(as_uuid=True), ForeignKey("workflow_executions.id", ondelete="CASCADE"), nullable=False, index=True)
    action_id = Column(UUID(as_uuid=True), ForeignKey("workflow_actions.id", ondelete="SET NULL"))
    action_type = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, server_default="pending")
    input_data = Column(JSONB)
    output_data = Column(JSONB)
    error_message = Column(Text)
    started_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class WorkflowRecordRun(Base):
    """Marker row enforcing ``run_once_per_record``."""

    __tablename__ = "workflow_record_runs"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    workflow_id = Column(UUID(as_uuid=True), ForeignKey("workflows.id", ondelete="CASCADE"), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(UUID(as_uuid=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("workflow_id", "entity_type", "entity_id", name="uq_workflow_record_run"),
    )
