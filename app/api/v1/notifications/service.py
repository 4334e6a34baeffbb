"""Task notifications: best-effort fan-out plus the recipient's inbox operations."""

from datetime import datetime, timezone
from typing import Iterable, List
from uuid import UUID

import structlog

from app.core.enums import NotificationEvent, TaskKind
from app.core.exceptions import NotFound, ServiceError
from app.core.ports import PersistencePort
from app.core.schemas import NewNotification, NotificationRecord, PrincipalRecord, TaskRecord

logger = structlog.get_logger(__name__)

TASKS_LINK = "/dashboard/tasks"

_TITLES = {
    NotificationEvent.NEW_TASK: "New class task: {title}",
    NotificationEvent.NEW_PERSONAL_TASK: "New personal task: {title}",
    NotificationEvent.TASK_UPDATED: "Task updated: {title}",
    NotificationEvent.TASK_DELETED: "Task deleted: {title}",
}

_MESSAGES = {
    NotificationEvent.NEW_TASK: "A new task was added for the whole class. Check your task list.",
    NotificationEvent.NEW_PERSONAL_TASK: "You were given a new personal task.",
    NotificationEvent.TASK_UPDATED: 'Task "{title}" was updated. Check the changes.',
    NotificationEvent.TASK_DELETED: 'Task "{title}" was removed from the list.',
}


def creation_event(task: TaskRecord) -> NotificationEvent:
    if task.kind == TaskKind.broadcast:
        return NotificationEvent.NEW_TASK
    return NotificationEvent.NEW_PERSONAL_TASK


def build_task_notifications(
    event: NotificationEvent,
    task: TaskRecord,
    actor_id: UUID,
    recipient_ids: Iterable[UUID],
) -> List[NewNotification]:
    """One notification per recipient. The actor is never notified of their own action."""
    return [
        NewNotification(
            recipient_id=rid,
            actor_id=actor_id,
            event_type=event.value,
            title=_TITLES[event].format(title=task.title),
            message=_MESSAGES[event].format(title=task.title),
            link_to=TASKS_LINK,
            entity_id=task.id,
        )
        for rid in recipient_ids
        if rid != actor_id
    ]


async def notify_task_event(
    port: PersistencePort,
    event: NotificationEvent,
    task: TaskRecord,
    actor_id: UUID,
    recipient_ids: Iterable[UUID],
) -> int:
    """Insert notifications; a store failure is logged and reported as 0 sent."""
    notifications = build_task_notifications(event, task, actor_id, recipient_ids)
    if not notifications:
        return 0
    try:
        return await port.insert_notifications(notifications)
    except ServiceError as e:
        logger.warning(
            "notification_fanout_failed",
            event_type=event.value,
            task_id=str(task.id),
            error=e.message,
        )
        return 0


# ----- Inbox -----
async def list_notifications(port: PersistencePort, principal: PrincipalRecord) -> List[NotificationRecord]:
    return await port.list_notifications(principal.id)


async def mark_read(
    port: PersistencePort,
    principal: PrincipalRecord,
    notification_id: UUID,
    read: bool,
) -> NotificationRecord:
    read_at = datetime.now(timezone.utc) if read else None
    record = await port.update_notification_read(notification_id, principal.id, read_at)
    if not record:
        raise NotFound("Notification not found")
    return record


async def delete_notification(port: PersistencePort, principal: PrincipalRecord, notification_id: UUID) -> None:
    if not await port.delete_notification(notification_id, principal.id):
        raise NotFound("Notification not found")
