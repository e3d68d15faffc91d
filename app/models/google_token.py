from sqlalchemy import Column, String, Text, DateTime, ForeignKey, ARRAY
from sqlalchemy.dialects.postgresql import UUID
from app.models.base import Base
from sqlalchemy.sql import func


class GoogleToken(Base):
    """Stored Google OAuth credentials for one user."""

    __tablename__ = "google_tokens"
    id = Column(UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid())
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    scopes = Column(ARRAY(String), nullable=False, server_default="{}")
    token_type = Column(String(20), server_default="Bearer")
    last_refreshed_at = Column(DateTime(timezone=True))
    refresh_error = Column(Text)
    refresh_error_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
