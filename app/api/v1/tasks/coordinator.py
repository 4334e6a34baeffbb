"""Task creation with per-recipient fan-out.

The store offers no cross-table transaction, so creation runs as a saga: every
step that leaves state behind registers a compensating action, and a failure in
a later step runs those actions in reverse before the original error is raised.
"""

from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

import structlog
from pydantic import BaseModel

from app.api.v1.deliveries import service as delivery_service
from app.core.enums import TaskKind, TaskPriority
from app.core.exceptions import ValidationError
from app.core.ports import PersistencePort
from app.core.schemas import DeliveryRecord, NewTask, PrincipalRecord, TaskRecord

from .resolver import FanoutTarget, resolve_recipients
from .schemas import TaskCreate, TaskUpdate

logger = structlog.get_logger(__name__)

Compensation = Callable[[], Awaitable[Any]]


class FanoutResult(BaseModel):
    task: TaskRecord
    deliveries: List[DeliveryRecord]


class Saga:
    """Ordered list of compensating actions, run newest first on failure."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._compensations: List[Tuple[str, Compensation]] = []

    def add_compensation(self, step: str, action: Compensation) -> None:
        self._compensations.append((step, action))

    @property
    def steps(self) -> List[str]:
        return [step for step, _ in self._compensations]

    async def compensate(self) -> List[Tuple[str, Exception]]:
        """Run every compensation even if some fail. Failures are logged and returned, never raised."""
        failures: List[Tuple[str, Exception]] = []
        for step, action in reversed(self._compensations):
            try:
                await action()
            except Exception as exc:
                logger.error("fanout_compensation_failed", saga=self.name, step=step, error=repr(exc))
                failures.append((step, exc))
        return failures


# ----- Validation -----
def _check_title(value: Any, errors: Dict[str, str]) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        errors["title"] = "Title must not be empty"
        return None
    return value.strip()


def _check_priority(value: Any, errors: Dict[str, str]) -> Optional[TaskPriority]:
    try:
        return TaskPriority(value)
    except ValueError:
        errors["priority"] = f"Priority must be one of: {', '.join(p.value for p in TaskPriority)}"
        return None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 date and time. Bare dates and epoch numbers are not timestamps."""
    if not isinstance(value, str) or "T" not in value.upper():
        return None
    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _check_due_at(value: Any, errors: Dict[str, str]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    parsed = _parse_timestamp(value)
    if parsed is None:
        errors["due_at"] = "Due date must be an ISO-8601 timestamp"
    return parsed


def _check_fields(payload: TaskCreate, errors: Dict[str, str]) -> Dict[str, Any]:
    return {
        "title": _check_title(payload.title, errors),
        "priority": _check_priority(payload.priority, errors),
        "due_at": _check_due_at(payload.due_at, errors),
    }


def task_input_errors(payload: TaskCreate) -> Dict[str, str]:
    """Field errors for everything except the fan-out target."""
    errors: Dict[str, str] = {}
    _check_fields(payload, errors)
    return errors


def validate_task_input(payload: TaskCreate, target: FanoutTarget, created_by: UUID) -> NewTask:
    """Return a NewTask or raise ValidationError naming every bad field."""
    errors: Dict[str, str] = {}
    values = _check_fields(payload, errors)
    if payload.kind != target.kind.value:
        errors["kind"] = f"Kind {payload.kind!r} does not match target {target}"
    if errors:
        raise ValidationError(errors)
    return NewTask(
        title=values["title"],
        description=payload.description,
        due_at=values["due_at"],
        priority=values["priority"],
        kind=target.kind,
        subject_id=payload.subject_id,
        assigned_to=target.recipient_id if target.kind == TaskKind.personal else None,
        created_by=created_by,
    )


def validate_task_changes(payload: TaskUpdate) -> Dict[str, Any]:
    """Fields present in the request body only. An explicit null clears description, due date or subject."""
    sent = payload.model_fields_set
    errors: Dict[str, str] = {}
    changes: Dict[str, Any] = {}
    if "title" in sent:
        changes["title"] = _check_title(payload.title, errors)
    if "priority" in sent:
        changes["priority"] = _check_priority(payload.priority, errors)
    if "due_at" in sent:
        changes["due_at"] = _check_due_at(payload.due_at, errors)
    if "description" in sent:
        changes["description"] = payload.description
    if "subject_id" in sent:
        changes["subject_id"] = payload.subject_id
    if errors:
        raise ValidationError(errors)
    return changes


# ----- Coordinator -----
class FanoutCoordinator:
    def __init__(self, port: PersistencePort) -> None:
        self.port = port

    async def create_task(
        self,
        payload: TaskCreate,
        target: FanoutTarget,
        created_by: UUID,
        roster: Optional[Iterable[PrincipalRecord]] = None,
    ) -> FanoutResult:
        """Insert the task, resolve recipients and create their deliveries.

        The caller never observes a task without deliveries: on any failure after
        the insert, partial deliveries and the task row are removed and the
        original error is re-raised.
        """
        new_task = validate_task_input(payload, target, created_by)
        task = await self.port.insert_task(new_task)

        saga = Saga(f"create_task:{task.id}")
        saga.add_compensation("delete_task", lambda: self.port.delete_task(task.id))
        try:
            snapshot = list(roster) if roster is not None else await self.port.get_roster_snapshot()
            recipients = resolve_recipients(target, snapshot)
            saga.add_compensation(
                "delete_deliveries",
                lambda: delivery_service.delete_all_for_task(self.port, task.id),
            )
            deliveries = await delivery_service.bulk_insert(self.port, task.id, sorted(recipients, key=str))
        except Exception as exc:
            logger.warning(
                "fanout_failed",
                task_id=str(task.id),
                target=str(target),
                error=type(exc).__name__,
            )
            await saga.compensate()
            raise

        logger.info(
            "task_created",
            task_id=str(task.id),
            kind=task.kind.value,
            recipients=len(deliveries),
            created_by=str(created_by),
        )
        return FanoutResult(task=task, deliveries=deliveries)
