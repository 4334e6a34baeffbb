"""Task and per-recipient delivery models."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Task(Base):
    """Task authored once and fanned out to one or many recipients."""

    __tablename__ = "tasks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    due_at = Column(DateTime(timezone=True), nullable=True)
    priority = Column(String(20), nullable=False, default="medium")  # low | medium | high
    kind = Column(String(20), nullable=False)  # personal | broadcast
    subject_id = Column(UUID(as_uuid=True), nullable=True)
    # Designated recipient of a personal task; null for broadcast.
    assigned_to = Column(UUID(as_uuid=True), nullable=True)
    created_by = Column(UUID(as_uuid=True), nullable=False)
    last_edited_by = Column(UUID(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    deliveries = relationship("TaskDelivery", back_populates="task", cascade="all, delete-orphan", passive_deletes=True)


class TaskDelivery(Base):
    """One recipient's progress on a task (a "submission")."""

    __tablename__ = "task_deliveries"
    __table_args__ = (
        UniqueConstraint("task_id", "recipient_id", name="uq_task_delivery_task_recipient"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    task_id = Column(UUID(as_uuid=True), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    recipient_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending")  # pending | in_progress | completed
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    task = relationship("Task", back_populates="deliveries")
