"""Program ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from habitual.db.base import Base


class Program(Base):
    __tablename__ = "programs"
    __table_args__ = (
        Index("ix_programs_creator_id", "creator_id"),
        Index("ix_programs_is_personal", "creator_id", "is_personal"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    creator_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(length=100), nullable=True)
    is_personal = Column(Boolean, nullable=False, default=False, server_default=sa_text("false"))
    is_private = Column(Boolean, nullable=False, default=False, server_default=sa_text("false"))
    is_deleted = Column(Boolean, nullable=False, default=False, server_default=sa_text("false"))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    activities = relationship("Activity", back_populates="program", order_by="Activity.created_at")
