"""Task service: the operations the HTTP layer calls, each with an explicit principal."""

from datetime import datetime, timezone
from typing import Iterable, List, Optional
from uuid import UUID

import structlog

from app.api.v1.deliveries import service as delivery_service
from app.api.v1.notifications import service as notification_service
from app.auth.policy import can_create, can_mutate_task, can_view_progress, can_view_task
from app.core.enums import NotificationEvent, TaskKind
from app.core.exceptions import Forbidden, InvalidTarget, NotFound, ValidationError
from app.core.ports import PersistencePort
from app.core.schemas import (
    PrincipalRecord,
    TaskFilters,
    TaskProgress,
    TaskRecord,
    TaskView,
)

from . import aggregator
from .coordinator import FanoutCoordinator, FanoutResult, task_input_errors, validate_task_changes
from .resolver import FanoutTarget
from .schemas import TaskCreate, TaskUpdate

logger = structlog.get_logger(__name__)

_MALFORMED_ASSIGNEE = "assigned_to is not a valid user id"


def target_from_payload(payload: TaskCreate) -> FanoutTarget:
    """Derive the fan-out target from ``kind`` and ``assigned_to``.

    A malformed ``assigned_to`` on its own is InvalidTarget; alongside other bad
    fields it is reported with them in one ValidationError.
    """
    if payload.kind == TaskKind.broadcast.value:
        return FanoutTarget.broadcast()
    if payload.kind == TaskKind.personal.value:
        if not payload.assigned_to:
            return FanoutTarget.single(None)
        try:
            return FanoutTarget.single(UUID(str(payload.assigned_to)))
        except ValueError:
            errors = task_input_errors(payload)
            if not errors:
                raise InvalidTarget(_MALFORMED_ASSIGNEE)
            errors["assigned_to"] = _MALFORMED_ASSIGNEE
            raise ValidationError(errors)
    errors = task_input_errors(payload)
    errors["kind"] = "Kind must be personal or broadcast"
    raise ValidationError(errors)


async def _get_task_or_404(port: PersistencePort, task_id: UUID) -> TaskRecord:
    task = await port.get_task(task_id)
    if not task:
        raise NotFound("Task not found")
    return task


# ----- Create -----
async def create_task(
    port: PersistencePort,
    principal: PrincipalRecord,
    payload: TaskCreate,
    target: Optional[FanoutTarget] = None,
    roster: Optional[Iterable[PrincipalRecord]] = None,
) -> FanoutResult:
    target = target or target_from_payload(payload)
    if not can_create(principal, target.kind):
        raise Forbidden("Only class officers can create class tasks")
    result = await FanoutCoordinator(port).create_task(payload, target, principal.id, roster=roster)
    await notification_service.notify_task_event(
        port,
        notification_service.creation_event(result.task),
        result.task,
        principal.id,
        [d.recipient_id for d in result.deliveries],
    )
    return result


# ----- Update -----
async def update_task(
    port: PersistencePort,
    principal: PrincipalRecord,
    task_id: UUID,
    payload: TaskUpdate,
) -> TaskRecord:
    task = await _get_task_or_404(port, task_id)
    if not can_mutate_task(principal, task):
        raise Forbidden("You do not have permission to edit this task")
    changes = validate_task_changes(payload)
    changes["updated_at"] = datetime.now(timezone.utc)
    changes["last_edited_by"] = principal.id
    updated = await port.update_task(task_id, changes)
    if not updated:
        raise NotFound("Task not found")
    logger.info("task_updated", task_id=str(task_id), edited_by=str(principal.id), fields=sorted(changes))
    recipients = await port.list_delivery_recipients(task_id)
    await notification_service.notify_task_event(
        port, NotificationEvent.TASK_UPDATED, updated, principal.id, recipients
    )
    return updated


# ----- Delete -----
async def delete_task(port: PersistencePort, principal: PrincipalRecord, task_id: UUID) -> None:
    task = await _get_task_or_404(port, task_id)
    if not can_mutate_task(principal, task):
        raise Forbidden("You do not have permission to delete this task")
    recipients = await port.list_delivery_recipients(task_id)
    await notification_service.notify_task_event(
        port, NotificationEvent.TASK_DELETED, task, principal.id, recipients
    )
    removed = await delivery_service.delete_all_for_task(port, task_id)
    await port.delete_task(task_id)
    logger.info("task_deleted", task_id=str(task_id), deleted_by=str(principal.id), deliveries=removed)


# ----- Read -----
async def list_tasks_for_principal(
    port: PersistencePort,
    principal: PrincipalRecord,
    filters: Optional[TaskFilters] = None,
) -> List[TaskView]:
    return await aggregator.list_for_principal(port, principal.id, filters)


async def get_task_view(port: PersistencePort, principal: PrincipalRecord, task_id: UUID) -> TaskView:
    view = await aggregator.view_for_principal(port, task_id, principal.id)
    if view.delivery_id is None and not can_view_task(principal, view.task):
        raise Forbidden("Not allowed to view this task")
    return view


async def get_task_progress(port: PersistencePort, principal: PrincipalRecord, task_id: UUID) -> TaskProgress:
    task = await _get_task_or_404(port, task_id)
    if not can_view_progress(principal, task):
        raise Forbidden("Not allowed to view progress for this task")
    return await aggregator.progress(port, task_id)

