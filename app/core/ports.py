"""Persistence port consumed by the fan-out core.

Each method is one suspension point against the backing store. Methods are
independent single-table operations; nothing here promises cross-entity
atomicity, which is why task creation compensates on failure instead.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple
from uuid import UUID

from app.core.enums import DeliveryStatus
from app.core.schemas import (
    DeliveryRecord,
    NewNotification,
    NewTask,
    NotificationRecord,
    PrincipalRecord,
    TaskRecord,
)


class PersistencePort(Protocol):
    # ----- Tasks -----
    async def insert_task(self, task: NewTask) -> TaskRecord:
        ...

    async def get_task(self, task_id: UUID) -> Optional[TaskRecord]:
        ...

    async def update_task(self, task_id: UUID, changes: Dict[str, object]) -> Optional[TaskRecord]:
        """Apply field changes and return the updated row, or None if absent."""
        ...

    async def delete_task(self, task_id: UUID) -> bool:
        """Return False when nothing was deleted."""
        ...

    # ----- Deliveries -----
    async def bulk_insert_deliveries(self, task_id: UUID, recipient_ids: Sequence[UUID]) -> List[DeliveryRecord]:
        """Insert pending deliveries; raise DuplicateDelivery on a repeated (task, recipient)."""
        ...

    async def get_delivery_by_id(self, delivery_id: UUID) -> Optional[DeliveryRecord]:
        ...

    async def update_delivery_status(
        self,
        delivery_id: UUID,
        new_status: DeliveryStatus,
        updated_at: datetime,
    ) -> Optional[DeliveryRecord]:
        ...

    async def delete_deliveries_for_task(self, task_id: UUID) -> int:
        ...

    async def list_delivery_recipients(self, task_id: UUID) -> List[UUID]:
        ...

    async def count_deliveries_by_status(self, task_id: UUID) -> Dict[DeliveryStatus, int]:
        ...

    # ----- Principal-scoped reads -----
    async def query_tasks_for_principal(self, principal_id: UUID) -> List[Tuple[TaskRecord, DeliveryRecord]]:
        """Tasks the principal has a delivery for, newest first."""
        ...

    async def get_task_for_principal(
        self,
        task_id: UUID,
        principal_id: UUID,
    ) -> Optional[Tuple[TaskRecord, Optional[DeliveryRecord]]]:
        ...

    # ----- Roster -----
    async def get_roster_snapshot(self) -> List[PrincipalRecord]:
        ...

    async def get_principal(self, principal_id: UUID) -> Optional[PrincipalRecord]:
        ...

    # ----- Notifications -----
    async def insert_notifications(self, notifications: Iterable[NewNotification]) -> int:
        ...

    async def list_notifications(self, recipient_id: UUID) -> List[NotificationRecord]:
        ...

    async def update_notification_read(
        self,
        notification_id: UUID,
        recipient_id: UUID,
        read_at: Optional[datetime],
    ) -> Optional[NotificationRecord]:
        ...

    async def delete_notification(self, notification_id: UUID, recipient_id: UUID) -> bool:
        ...
