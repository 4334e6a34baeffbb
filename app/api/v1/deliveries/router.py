"""Delivery (per-recipient submission) API router."""

from uuid import UUID

from fastapi import APIRouter, Depends

from app.auth.dependencies import get_current_principal
from app.auth.policy import can_mutate_delivery
from app.auth.schemas import CurrentPrincipal
from app.core.config import settings
from app.core.exceptions import Forbidden, ServiceError, to_http_exception
from app.core.schemas import DeliveryRecord
from app.db.repository import SqlAlchemyStore, get_store

from . import service
from .schemas import DeliveryResponse, DeliveryStatusUpdate, DeliveryUpdateResponse

router = APIRouter(prefix="/api/v1/tasks/deliveries", tags=["deliveries"])


def _delivery_to_resp(record: DeliveryRecord) -> DeliveryResponse:
    return DeliveryResponse(
        id=record.id,
        task_id=record.task_id,
        recipient_id=record.recipient_id,
        status=record.status,
        updated_at=record.updated_at,
    )


@router.get("/{delivery_id}", response_model=DeliveryResponse)
async def get_delivery(
    delivery_id: UUID,
    store: SqlAlchemyStore = Depends(get_store),
    current_principal: CurrentPrincipal = Depends(get_current_principal),
):
    try:
        record = await service.get_delivery(store, delivery_id)
        if not can_mutate_delivery(current_principal, record):
            raise Forbidden("Not allowed to view this delivery")
    except ServiceError as e:
        raise to_http_exception(e, conceal_forbidden=settings.conceal_forbidden)
    return _delivery_to_resp(record)


@router.put("/{delivery_id}", response_model=DeliveryUpdateResponse)
async def update_delivery_status(
    delivery_id: UUID,
    payload: DeliveryStatusUpdate,
    store: SqlAlchemyStore = Depends(get_store),
    current_principal: CurrentPrincipal = Depends(get_current_principal),
):
    try:
        record = await service.update_status(store, current_principal, delivery_id, payload.status)
    except ServiceError as e:
        raise to_http_exception(e, conceal_forbidden=settings.conceal_forbidden)
    return DeliveryUpdateResponse(message="Status updated", data=_delivery_to_resp(record))
