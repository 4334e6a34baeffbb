"""Delivery store: bulk creation, owner-only status updates, cascade cleanup."""

from datetime import datetime, timezone
from typing import List, Sequence
from uuid import UUID

import structlog

from app.auth.policy import can_mutate_delivery
from app.core.enums import DeliveryStatus
from app.core.exceptions import DuplicateDelivery, Forbidden, InvalidTransition, NotFound
from app.core.ports import PersistencePort
from app.core.schemas import DeliveryRecord, PrincipalRecord

from .transitions import validate_transition

logger = structlog.get_logger(__name__)


async def bulk_insert(port: PersistencePort, task_id: UUID, recipient_ids: Sequence[UUID]) -> List[DeliveryRecord]:
    """Create one pending delivery per recipient.

    A recipient repeated in ``recipient_ids`` is a duplicate just like one that
    already has a delivery for this task; both raise DuplicateDelivery.
    """
    ids = list(recipient_ids)
    if len(set(ids)) != len(ids):
        raise DuplicateDelivery()
    return await port.bulk_insert_deliveries(task_id, ids)


async def get_delivery(port: PersistencePort, delivery_id: UUID) -> DeliveryRecord:
    record = await port.get_delivery_by_id(delivery_id)
    if not record:
        raise NotFound("Delivery not found")
    return record


async def update_status(
    port: PersistencePort,
    principal: PrincipalRecord,
    delivery_id: UUID,
    new_status: DeliveryStatus,
) -> DeliveryRecord:
    record = await get_delivery(port, delivery_id)
    if not can_mutate_delivery(principal, record):
        raise Forbidden("Only the recipient can update this delivery")
    if record.status == new_status:
        return record
    if not validate_transition(record.status, new_status):
        raise InvalidTransition(record.status.value, new_status.value)
    updated = await port.update_delivery_status(delivery_id, new_status, datetime.now(timezone.utc))
    if not updated:
        # Task deleted between the read and the write.
        raise NotFound("Delivery not found")
    logger.info(
        "delivery_status_updated",
        delivery_id=str(delivery_id),
        task_id=str(updated.task_id),
        from_status=record.status.value,
        to_status=new_status.value,
    )
    return updated


async def delete_all_for_task(port: PersistencePort, task_id: UUID) -> int:
    return await port.delete_deliveries_for_task(task_id)
