"""Delivery schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from app.core.enums import DeliveryStatus


class DeliveryStatusUpdate(BaseModel):
    status: DeliveryStatus


class DeliveryResponse(BaseModel):
    id: UUID
    task_id: UUID
    recipient_id: UUID
    status: DeliveryStatus
    updated_at: datetime

    class Config:
        from_attributes = True


class DeliveryUpdateResponse(BaseModel):
    message: str
    data: DeliveryResponse
