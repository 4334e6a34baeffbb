"""Notification schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class NotificationReadUpdate(BaseModel):
    read: bool


class NotificationResponse(BaseModel):
    id: UUID
    actor_id: Optional[UUID] = None
    event_type: str
    title: str
    message: str
    link_to: Optional[str] = None
    entity_id: Optional[UUID] = None
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
