"""SQLAlchemy implementation of the persistence port.

Every public method commits on its own; a failure rolls the session back so the
same session can serve the compensating calls that follow.
"""

import asyncio
import functools
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

import structlog
from fastapi import Depends, status
from sqlalchemy import and_, delete, func, select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.enums import DeliveryStatus
from app.core.exceptions import DuplicateDelivery, ServiceError, StoreTimeout, StoreUnavailable
from app.core.models import Notification, Profile, Task, TaskDelivery
from app.core.schemas import (
    DeliveryRecord,
    NewNotification,
    NewTask,
    NotificationRecord,
    PrincipalRecord,
    TaskRecord,
)
from app.db.session import get_db

logger = structlog.get_logger(__name__)

DELIVERY_UNIQUE_CONSTRAINT = "uq_task_delivery_task_recipient"

_TASK_FIELDS = ("title", "description", "due_at", "priority", "subject_id", "last_edited_by", "updated_at")


def is_duplicate_delivery(error: IntegrityError) -> bool:
    """True when the violated constraint is the one-delivery-per-recipient rule.

    PostgreSQL names the constraint; SQLite only lists the columns.
    """
    detail = str(error.orig)
    if DELIVERY_UNIQUE_CONSTRAINT in detail:
        return True
    return "UNIQUE constraint failed" in detail and "task_deliveries.recipient_id" in detail


def _plain(value):
    return value.value if hasattr(value, "value") else value


def _store_call(operation: str):
    """Apply the configured timeout and translate driver errors into service errors."""

    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(self: "SqlAlchemyStore", *args, **kwargs):
            try:
                if self.timeout:
                    return await asyncio.wait_for(fn(self, *args, **kwargs), self.timeout)
                return await fn(self, *args, **kwargs)
            except ServiceError:
                raise
            except asyncio.TimeoutError as e:
                await self._rollback_quietly()
                raise StoreTimeout(operation=operation) from e
            except IntegrityError as e:
                await self._rollback_quietly()
                raise ServiceError(f"Conflicting write in {operation}", status.HTTP_409_CONFLICT) from e
            except DBAPIError as e:
                await self._rollback_quietly()
                raise StoreUnavailable(operation=operation) from e

        return wrapper

    return decorator


class SqlAlchemyStore:
    """PersistencePort backed by an AsyncSession."""

    def __init__(self, db: AsyncSession, timeout: Optional[float] = None) -> None:
        self.db = db
        self.timeout = timeout if timeout is not None else settings.db_timeout_seconds

    async def _rollback_quietly(self) -> None:
        try:
            await self.db.rollback()
        except DBAPIError as e:
            logger.warning("store_rollback_failed", error=repr(e))

    # ----- Tasks -----
    @_store_call("insert_task")
    async def insert_task(self, task: NewTask) -> TaskRecord:
        row = Task(**{k: _plain(v) for k, v in task.model_dump().items()})
        self.db.add(row)
        await self.db.commit()
        await self.db.refresh(row)
        return TaskRecord.model_validate(row)

    @_store_call("get_task")
    async def get_task(self, task_id: UUID) -> Optional[TaskRecord]:
        row = await self.db.get(Task, task_id)
        return TaskRecord.model_validate(row) if row else None

    @_store_call("update_task")
    async def update_task(self, task_id: UUID, changes: Dict[str, object]) -> Optional[TaskRecord]:
        row = await self.db.get(Task, task_id)
        if not row:
            return None
        for field, value in changes.items():
            if field not in _TASK_FIELDS:
                raise ValueError(f"Task field {field!r} is not updatable")
            setattr(row, field, _plain(value))
        await self.db.commit()
        await self.db.refresh(row)
        return TaskRecord.model_validate(row)

    @_store_call("delete_task")
    async def delete_task(self, task_id: UUID) -> bool:
        result = await self.db.execute(delete(Task).where(Task.id == task_id))
        await self.db.commit()
        return (result.rowcount or 0) > 0

    # ----- Deliveries -----
    @_store_call("bulk_insert_deliveries")
    async def bulk_insert_deliveries(self, task_id: UUID, recipient_ids: Sequence[UUID]) -> List[DeliveryRecord]:
        rows = [TaskDelivery(task_id=task_id, recipient_id=rid, status=DeliveryStatus.pending.value) for rid in recipient_ids]
        self.db.add_all(rows)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self._rollback_quietly()
            if is_duplicate_delivery(e):
                raise DuplicateDelivery() from e
            raise ServiceError("Conflicting write in bulk_insert_deliveries", status.HTTP_409_CONFLICT) from e
        return [DeliveryRecord.model_validate(r) for r in rows]

    @_store_call("get_delivery_by_id")
    async def get_delivery_by_id(self, delivery_id: UUID) -> Optional[DeliveryRecord]:
        row = await self.db.get(TaskDelivery, delivery_id)
        return DeliveryRecord.model_validate(row) if row else None

    @_store_call("update_delivery_status")
    async def update_delivery_status(
        self,
        delivery_id: UUID,
        new_status: DeliveryStatus,
        updated_at: datetime,
    ) -> Optional[DeliveryRecord]:
        row = await self.db.get(TaskDelivery, delivery_id)
        if not row:
            return None
        row.status = _plain(new_status)
        row.updated_at = updated_at
        await self.db.commit()
        await self.db.refresh(row)
        return DeliveryRecord.model_validate(row)

    @_store_call("delete_deliveries_for_task")
    async def delete_deliveries_for_task(self, task_id: UUID) -> int:
        result = await self.db.execute(delete(TaskDelivery).where(TaskDelivery.task_id == task_id))
        await self.db.commit()
        return result.rowcount or 0

    @_store_call("list_delivery_recipients")
    async def list_delivery_recipients(self, task_id: UUID) -> List[UUID]:
        result = await self.db.execute(select(TaskDelivery.recipient_id).where(TaskDelivery.task_id == task_id))
        return list(result.scalars().all())

    @_store_call("count_deliveries_by_status")
    async def count_deliveries_by_status(self, task_id: UUID) -> Dict[DeliveryStatus, int]:
        result = await self.db.execute(
            select(TaskDelivery.status, func.count(TaskDelivery.id))
            .where(TaskDelivery.task_id == task_id)
            .group_by(TaskDelivery.status)
        )
        return {DeliveryStatus(s): n for s, n in result.all()}

    # ----- Principal-scoped reads -----
    @_store_call("query_tasks_for_principal")
    async def query_tasks_for_principal(self, principal_id: UUID) -> List[Tuple[TaskRecord, DeliveryRecord]]:
        stmt = (
            select(Task, TaskDelivery)
            .join(TaskDelivery, TaskDelivery.task_id == Task.id)
            .where(TaskDelivery.recipient_id == principal_id)
            .order_by(Task.created_at.desc(), Task.id)
        )
        result = await self.db.execute(stmt)
        return [(TaskRecord.model_validate(t), DeliveryRecord.model_validate(d)) for t, d in result.all()]

    @_store_call("get_task_for_principal")
    async def get_task_for_principal(
        self,
        task_id: UUID,
        principal_id: UUID,
    ) -> Optional[Tuple[TaskRecord, Optional[DeliveryRecord]]]:
        stmt = (
            select(Task, TaskDelivery)
            .outerjoin(
                TaskDelivery,
                and_(TaskDelivery.task_id == Task.id, TaskDelivery.recipient_id == principal_id),
            )
            .where(Task.id == task_id)
        )
        row = (await self.db.execute(stmt)).first()
        if row is None:
            return None
        task, delivery = row
        return TaskRecord.model_validate(task), (DeliveryRecord.model_validate(delivery) if delivery else None)

    # ----- Roster -----
    @_store_call("get_roster_snapshot")
    async def get_roster_snapshot(self) -> List[PrincipalRecord]:
        result = await self.db.execute(select(Profile).order_by(Profile.created_at, Profile.id))
        return [PrincipalRecord.model_validate(p) for p in result.scalars().all()]

    @_store_call("get_principal")
    async def get_principal(self, principal_id: UUID) -> Optional[PrincipalRecord]:
        row = await self.db.get(Profile, principal_id)
        return PrincipalRecord.model_validate(row) if row else None

    # ----- Notifications -----
    @_store_call("insert_notifications")
    async def insert_notifications(self, notifications: Iterable[NewNotification]) -> int:
        rows = [Notification(**n.model_dump()) for n in notifications]
        if not rows:
            return 0
        self.db.add_all(rows)
        await self.db.commit()
        return len(rows)

    @_store_call("list_notifications")
    async def list_notifications(self, recipient_id: UUID) -> List[NotificationRecord]:
        result = await self.db.execute(
            select(Notification)
            .where(Notification.recipient_id == recipient_id)
            .order_by(Notification.created_at.desc(), Notification.id)
        )
        return [NotificationRecord.model_validate(n) for n in result.scalars().all()]

    @_store_call("update_notification_read")
    async def update_notification_read(
        self,
        notification_id: UUID,
        recipient_id: UUID,
        read_at: Optional[datetime],
    ) -> Optional[NotificationRecord]:
        row = await self.db.get(Notification, notification_id)
        if not row or row.recipient_id != recipient_id:
            return None
        row.read_at = read_at
        await self.db.commit()
        await self.db.refresh(row)
        return NotificationRecord.model_validate(row)

    @_store_call("delete_notification")
    async def delete_notification(self, notification_id: UUID, recipient_id: UUID) -> bool:
        result = await self.db.execute(
            delete(Notification).where(
                Notification.id == notification_id,
                Notification.recipient_id == recipient_id,
            )
        )
        await self.db.commit()
        return (result.rowcount or 0) > 0


async def get_store(db: AsyncSession = Depends(get_db)) -> SqlAlchemyStore:
    return SqlAlchemyStore(db)
