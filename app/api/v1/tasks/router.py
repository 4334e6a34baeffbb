"""Tasks API router."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.auth.dependencies import get_current_principal
from app.auth.schemas import CurrentPrincipal
from app.core.config import settings
from app.core.enums import DeliveryStatus, TaskKind, TaskPriority
from app.core.exceptions import ServiceError, to_http_exception
from app.core.schemas import TaskFilters, TaskRecord, TaskView
from app.db.repository import SqlAlchemyStore, get_store

from . import service
from .schemas import (
    MessageResponse,
    TaskCreate,
    TaskCreateResponse,
    TaskListResponse,
    TaskProgressResponse,
    TaskResponse,
    TaskUpdate,
    TaskUpdateResponse,
    TaskViewResponse,
)

router = APIRouter(prefix="/api/v1/tasks", tags=["tasks"])


def _task_to_resp(task: TaskRecord) -> TaskResponse:
    return TaskResponse.model_validate(task.model_dump())


def _view_to_resp(view: TaskView) -> TaskViewResponse:
    return TaskViewResponse(
        task=_task_to_resp(view.task),
        delivery_id=view.delivery_id,
        my_status=view.my_status,
        delivery_updated_at=view.delivery_updated_at,
    )


def _lookup_error(e: ServiceError) -> HTTPException:
    return to_http_exception(e, conceal_forbidden=settings.conceal_forbidden)


@router.post(
    "",
    response_model=TaskCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_task(
    payload: TaskCreate,
    store: SqlAlchemyStore = Depends(get_store),
    current_principal: CurrentPrincipal = Depends(get_current_principal),
):
    try:
        result = await service.create_task(store, current_principal, payload)
    except ServiceError as e:
        raise to_http_exception(e)
    task = result.task
    label = "Class task" if task.kind == TaskKind.broadcast else "Personal task"
    return TaskCreateResponse(
        message=f"{label} created",
        task_id=task.id,
        kind=task.kind,
        assigned_users=len(result.deliveries),
        assigned_to=task.assigned_to,
    )


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    kind: Optional[TaskKind] = Query(None),
    priority: Optional[TaskPriority] = Query(None),
    status_filter: Optional[DeliveryStatus] = Query(None, alias="status"),
    store: SqlAlchemyStore = Depends(get_store),
    current_principal: CurrentPrincipal = Depends(get_current_principal),
):
    filters = TaskFilters(kind=kind, priority=priority, status=status_filter)
    try:
        views = await service.list_tasks_for_principal(store, current_principal, filters)
    except ServiceError as e:
        raise to_http_exception(e)
    return TaskListResponse(data=[_view_to_resp(v) for v in views])


@router.get("/{task_id}", response_model=TaskViewResponse)
async def get_task(
    task_id: UUID,
    store: SqlAlchemyStore = Depends(get_store),
    current_principal: CurrentPrincipal = Depends(get_current_principal),
):
    try:
        view = await service.get_task_view(store, current_principal, task_id)
    except ServiceError as e:
        raise _lookup_error(e)
    return _view_to_resp(view)


@router.get("/{task_id}/progress", response_model=TaskProgressResponse)
async def get_task_progress(
    task_id: UUID,
    store: SqlAlchemyStore = Depends(get_store),
    current_principal: CurrentPrincipal = Depends(get_current_principal),
):
    try:
        progress = await service.get_task_progress(store, current_principal, task_id)
    except ServiceError as e:
        raise _lookup_error(e)
    return TaskProgressResponse(
        task_id=progress.task_id,
        total=progress.total,
        completed=progress.completed,
        completion_ratio=progress.completion_ratio,
        counts=progress.counts,
    )


@router.patch("/{task_id}", response_model=TaskUpdateResponse)
async def update_task(
    task_id: UUID,
    payload: TaskUpdate,
    store: SqlAlchemyStore = Depends(get_store),
    current_principal: CurrentPrincipal = Depends(get_current_principal),
):
    try:
        task = await service.update_task(store, current_principal, task_id, payload)
    except ServiceError as e:
        raise _lookup_error(e)
    return TaskUpdateResponse(message="Task updated", data=_task_to_resp(task))


@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(
    task_id: UUID,
    store: SqlAlchemyStore = Depends(get_store),
    current_principal: CurrentPrincipal = Depends(get_current_principal),
):
    try:
        await service.delete_task(store, current_principal, task_id)
    except ServiceError as e:
        raise _lookup_error(e)
    return MessageResponse(message="Task deleted")
