"""Transport-independent records passed across the persistence port."""

from datetime import datetime
from typing import Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import DeliveryStatus, TaskKind, TaskPriority


class PrincipalRecord(BaseModel):
    """Principal as seen by the core: identity and role only."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    role: str
    name: Optional[str] = None


class NewTask(BaseModel):
    """Validated task ready to be inserted."""

    title: str
    description: Optional[str] = None
    due_at: Optional[datetime] = None
    priority: TaskPriority = TaskPriority.medium
    kind: TaskKind
    subject_id: Optional[UUID] = None
    assigned_to: Optional[UUID] = None
    created_by: UUID


class TaskRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: Optional[str] = None
    due_at: Optional[datetime] = None
    priority: TaskPriority
    kind: TaskKind
    subject_id: Optional[UUID] = None
    assigned_to: Optional[UUID] = None
    created_by: UUID
    last_edited_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class DeliveryRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    task_id: UUID
    recipient_id: UUID
    status: DeliveryStatus
    created_at: datetime
    updated_at: datetime


class TaskView(BaseModel):
    """A task joined with the viewing principal's own delivery, if any."""

    task: TaskRecord
    delivery_id: Optional[UUID] = None
    my_status: Optional[DeliveryStatus] = None
    delivery_updated_at: Optional[datetime] = None

    @classmethod
    def build(cls, task: TaskRecord, delivery: Optional[DeliveryRecord]) -> "TaskView":
        if delivery is None:
            return cls(task=task)
        return cls(
            task=task,
            delivery_id=delivery.id,
            my_status=delivery.status,
            delivery_updated_at=delivery.updated_at,
        )


class TaskFilters(BaseModel):
    kind: Optional[TaskKind] = None
    priority: Optional[TaskPriority] = None
    status: Optional[DeliveryStatus] = None


class TaskProgress(BaseModel):
    task_id: UUID
    total: int
    counts: Dict[DeliveryStatus, int] = Field(default_factory=dict)

    @property
    def completed(self) -> int:
        return self.counts.get(DeliveryStatus.completed, 0)

    @property
    def completion_ratio(self) -> float:
        return self.completed / self.total if self.total else 0.0


class NotificationRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    recipient_id: UUID
    actor_id: Optional[UUID] = None
    event_type: str
    title: str
    message: str
    link_to: Optional[str] = None
    entity_id: Optional[UUID] = None
    read_at: Optional[datetime] = None
    created_at: datetime


class NewNotification(BaseModel):
    recipient_id: UUID
    actor_id: Optional[UUID] = None
    event_type: str
    title: str
    message: str
    link_to: Optional[str] = "/dashboard/tasks"
    entity_id: Optional[UUID] = None
