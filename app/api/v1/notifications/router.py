"""Notifications API router."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.auth.dependencies import get_current_principal
from app.auth.schemas import CurrentPrincipal
from app.core.exceptions import ServiceError, to_http_exception
from app.db.repository import SqlAlchemyStore, get_store

from . import service
from .schemas import NotificationReadUpdate, NotificationResponse

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationResponse])
async def list_notifications(
    store: SqlAlchemyStore = Depends(get_store),
    current_principal: CurrentPrincipal = Depends(get_current_principal),
):
    try:
        rows = await service.list_notifications(store, current_principal)
    except ServiceError as e:
        raise to_http_exception(e)
    return [NotificationResponse.model_validate(n.model_dump()) for n in rows]


@router.patch("/{notification_id}", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: UUID,
    payload: NotificationReadUpdate,
    store: SqlAlchemyStore = Depends(get_store),
    current_principal: CurrentPrincipal = Depends(get_current_principal),
):
    try:
        record = await service.mark_read(store, current_principal, notification_id, payload.read)
    except ServiceError as e:
        raise to_http_exception(e)
    return NotificationResponse.model_validate(record.model_dump())


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: UUID,
    store: SqlAlchemyStore = Depends(get_store),
    current_principal: CurrentPrincipal = Depends(get_current_principal),
):
    try:
        await service.delete_notification(store, current_principal, notification_id)
    except ServiceError as e:
        raise to_http_exception(e)
