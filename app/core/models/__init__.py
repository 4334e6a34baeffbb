from app.core.models.notification import Notification
from app.core.models.profile import Profile
from app.core.models.task import Task, TaskDelivery

__all__ = [
    "Notification",
    "Profile",
    "Task",
    "TaskDelivery",
]
