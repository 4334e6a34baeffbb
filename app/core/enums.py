from enum import Enum


class TaskPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class TaskKind(str, Enum):
    personal = "personal"
    broadcast = "broadcast"


class DeliveryStatus(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"


class PrincipalRole(str, Enum):
    ADMIN = "admin"
    CLASS_LEADER = "class_leader"
    SECRETARY = "secretary"
    STUDENT = "student"


class NotificationEvent(str, Enum):
    NEW_TASK = "new_task"
    NEW_PERSONAL_TASK = "new_personal_task"
    TASK_UPDATED = "task_updated"
    TASK_DELETED = "task_deleted"
