"""SocialConnection model"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, JSON, Index, Uuid
from sqlalchemy.orm import relationship

from socialink.models.base import Base


class SocialConnection(Base):
    """Link between a user and one social provider's credentials"""
    __tablename__ = "social_connections"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(String(20), nullable=False)  # facebook, instagram, tiktok, threads
    # "metadata" is reserved on declarative classes, so the attribute is renamed
    connection_metadata = Column("metadata", JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)

    # Relationship
    user = relationship("User", back_populates="connections")

    # Composite index for the upsert lookup
    __table_args__ = (
        Index('ix_social_connections_user_provider', 'user_id', 'provider'),
    )
