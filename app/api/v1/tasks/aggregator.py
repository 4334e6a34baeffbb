"""Read-side views joining a task with the caller's own delivery."""

from typing import Callable, List, Optional
from uuid import UUID

from app.core.enums import DeliveryStatus
from app.core.exceptions import NotFound
from app.core.ports import PersistencePort
from app.core.schemas import TaskFilters, TaskProgress, TaskView

Predicate = Callable[[TaskView], bool]


def build_predicates(filters: Optional[TaskFilters]) -> List[Predicate]:
    if filters is None:
        return []
    predicates: List[Predicate] = []
    if filters.kind is not None:
        predicates.append(lambda v, kind=filters.kind: v.task.kind == kind)
    if filters.priority is not None:
        predicates.append(lambda v, priority=filters.priority: v.task.priority == priority)
    if filters.status is not None:
        predicates.append(lambda v, status=filters.status: v.my_status == status)
    return predicates


def apply_filters(views: List[TaskView], filters: Optional[TaskFilters]) -> List[TaskView]:
    predicates = build_predicates(filters)
    return [v for v in views if all(p(v) for p in predicates)]


async def view_for_principal(port: PersistencePort, task_id: UUID, principal_id: UUID) -> TaskView:
    row = await port.get_task_for_principal(task_id, principal_id)
    if row is None:
        raise NotFound("Task not found")
    task, delivery = row
    return TaskView.build(task, delivery)


async def list_for_principal(
    port: PersistencePort,
    principal_id: UUID,
    filters: Optional[TaskFilters] = None,
) -> List[TaskView]:
    """Tasks the principal holds a delivery for, newest first. Re-read on every call."""
    rows = await port.query_tasks_for_principal(principal_id)
    return apply_filters([TaskView.build(task, delivery) for task, delivery in rows], filters)


async def progress(port: PersistencePort, task_id: UUID) -> TaskProgress:
    counts = await port.count_deliveries_by_status(task_id)
    full = {s: counts.get(s, 0) for s in DeliveryStatus}
    return TaskProgress(task_id=task_id, total=sum(full.values()), counts=full)
