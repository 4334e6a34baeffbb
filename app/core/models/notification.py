import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.dialects.postgresql import UUID

from app.db.session import Base


class Notification(Base):
    """Inbox entry produced as a side effect of task fan-out."""

    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    recipient_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    actor_id = Column(UUID(as_uuid=True), nullable=True)
    # new_task | new_personal_task | task_updated | task_deleted
    event_type = Column(String(50), nullable=False)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    link_to = Column(String(255), nullable=True)
    # Task id; kept after the task itself is deleted.
    entity_id = Column(UUID(as_uuid=True), nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
