"""Task ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
    text as sa_text,
)
from sqlalchemy.dialects.postgresql import UUID

from habitual.db.base import Base


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        # One row per generated cell; NULL activity ids (ad-hoc tasks) never collide.
        UniqueConstraint("user_id", "activity_id", "due_date", name="uq_tasks_user_activity_due"),
        Index("ix_tasks_user_due_date", "user_id", "due_date"),
        Index("ix_tasks_activity_id", "activity_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    activity_id = Column(
        UUID(as_uuid=True),
        ForeignKey("activities.id", ondelete="SET NULL"),
        nullable=True,
    )
    program_id = Column(
        UUID(as_uuid=True),
        ForeignKey("programs.id", ondelete="SET NULL"),
        nullable=True,
    )
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(String(length=20), nullable=False, default="medium", server_default=sa_text("'medium'"))
    due_date = Column(Date, nullable=False)
    is_completed = Column(Boolean, nullable=False, default=False, server_default=sa_text("false"))
    completed_at = Column(DateTime(timezone=True), nullable=True)
    is_sticky = Column(Boolean, nullable=False, default=False, server_default=sa_text("false"))
    is_deleted = Column(Boolean, nullable=False, default=False, server_default=sa_text("false"))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
