"""Who may create, edit or delete tasks and who may move a delivery's status."""

from typing import FrozenSet, Optional

from app.core.config import settings
from app.core.enums import TaskKind
from app.core.schemas import DeliveryRecord, PrincipalRecord, TaskRecord


def _elevated(principal: PrincipalRecord, elevated_roles: Optional[FrozenSet[str]] = None) -> bool:
    roles = settings.elevated_role_set if elevated_roles is None else elevated_roles
    return principal.role in roles


def can_create(principal: PrincipalRecord, kind: TaskKind, elevated_roles: Optional[FrozenSet[str]] = None) -> bool:
    """Broadcast tasks need an elevated role; any principal may create a personal task."""
    if kind == TaskKind.broadcast:
        return _elevated(principal, elevated_roles)
    return True


def can_mutate_task(principal: PrincipalRecord, task: TaskRecord, elevated_roles: Optional[FrozenSet[str]] = None) -> bool:
    return task.created_by == principal.id or _elevated(principal, elevated_roles)


def can_view_progress(principal: PrincipalRecord, task: TaskRecord, elevated_roles: Optional[FrozenSet[str]] = None) -> bool:
    return can_mutate_task(principal, task, elevated_roles)


def can_mutate_delivery(principal: PrincipalRecord, record: DeliveryRecord) -> bool:
    # Status is the recipient's own claim of progress; no role overrides it.
    return record.recipient_id == principal.id


def can_view_task(principal: PrincipalRecord, task: TaskRecord, elevated_roles: Optional[FrozenSet[str]] = None) -> bool:
    """Broadcast tasks are visible to everyone; personal ones to their creator, recipient and elevated roles."""
    if task.kind == TaskKind.broadcast:
        return True
    return task.assigned_to == principal.id or can_mutate_task(principal, task, elevated_roles)
