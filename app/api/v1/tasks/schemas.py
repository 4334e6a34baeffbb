"""Task schemas.

Fields the coordinator judges are untyped here, so a bad request reports every
failing field at once instead of stopping at the first type error.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import DeliveryStatus, TaskKind, TaskPriority


# ----- Task -----
class TaskCreate(BaseModel):
    title: Any = ""
    description: Optional[str] = None
    due_at: Any = Field(None, description="ISO-8601 timestamp")
    priority: Any = Field("medium", description="low | medium | high")
    kind: Any = Field(None, description="personal | broadcast")
    subject_id: Optional[UUID] = None
    assigned_to: Any = Field(None, description="Recipient id; required for personal tasks")


class TaskUpdate(BaseModel):
    title: Any = None
    description: Optional[str] = None
    due_at: Any = None
    priority: Any = None
    subject_id: Optional[UUID] = None


class TaskResponse(BaseModel):
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

    class Config:
        from_attributes = True


class TaskCreateResponse(BaseModel):
    message: str
    task_id: UUID
    kind: TaskKind
    assigned_users: int
    assigned_to: Optional[UUID] = None


class TaskUpdateResponse(BaseModel):
    message: str
    data: TaskResponse


class TaskViewResponse(BaseModel):
    task: TaskResponse
    delivery_id: Optional[UUID] = None
    my_status: Optional[DeliveryStatus] = None
    delivery_updated_at: Optional[datetime] = None


class TaskProgressResponse(BaseModel):
    task_id: UUID
    total: int
    completed: int
    completion_ratio: float
    counts: Dict[DeliveryStatus, int] = Field(default_factory=dict)


class MessageResponse(BaseModel):
    message: str


class TaskListResponse(BaseModel):
    data: List[TaskViewResponse]
