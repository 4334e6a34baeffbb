"""Fan-out coordinator: creation, validation and compensation on failure."""

import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.tasks.coordinator import FanoutCoordinator, Saga
from app.api.v1.tasks.resolver import FanoutTarget
from app.api.v1.tasks.schemas import TaskCreate
from app.core.enums import DeliveryStatus, TaskKind, TaskPriority
from app.core.exceptions import EmptyRoster, InvalidTarget, StoreTimeout, StoreUnavailable, ValidationError
from app.core.models import Task, TaskDelivery
from tests.fakes import FaultyStore, PartialInsertStore


async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


def _broadcast(**overrides) -> TaskCreate:
    data = {"title": "Read chapter 3", "priority": "high", "kind": "broadcast", "due_at": "2030-01-15T08:00:00Z"}
    data.update(overrides)
    return TaskCreate(**data)


def _personal(assigned_to=None, **overrides) -> TaskCreate:
    data = {"title": "Fix lab report", "kind": "personal", "assigned_to": assigned_to}
    data.update(overrides)
    return TaskCreate(**data)


@pytest.mark.asyncio
async def test_broadcast_creates_one_pending_delivery_per_roster_member(store, make_principal) -> None:
    roster = [await make_principal(f"S{i}") for i in range(4)]

    result = await FanoutCoordinator(store).create_task(_broadcast(), FanoutTarget.broadcast(), roster[0].id)

    assert result.task.kind == TaskKind.broadcast
    assert result.task.priority == TaskPriority.high
    assert result.task.assigned_to is None
    assert len(result.deliveries) == 4
    assert {d.recipient_id for d in result.deliveries} == {p.id for p in roster}
    assert all(d.status == DeliveryStatus.pending for d in result.deliveries)
    counts = await store.count_deliveries_by_status(result.task.id)
    assert counts == {DeliveryStatus.pending: 4}


@pytest.mark.asyncio
async def test_roster_snapshot_passed_by_caller_is_used(store, make_principal) -> None:
    a = await make_principal("A")
    await make_principal("B")

    result = await FanoutCoordinator(store).create_task(_broadcast(), FanoutTarget.broadcast(), a.id, roster=[a])

    assert [d.recipient_id for d in result.deliveries] == [a.id]


@pytest.mark.asyncio
async def test_personal_creates_exactly_one_delivery(store, make_principal) -> None:
    author = await make_principal("Author")
    recipient = await make_principal("Recipient")

    result = await FanoutCoordinator(store).create_task(
        _personal(str(recipient.id)), FanoutTarget.single(recipient.id), author.id
    )

    assert result.task.kind == TaskKind.personal
    assert result.task.assigned_to == recipient.id
    assert len(result.deliveries) == 1
    assert result.deliveries[0].recipient_id == recipient.id
    assert result.deliveries[0].status == DeliveryStatus.pending


@pytest.mark.asyncio
async def test_personal_without_recipient_leaves_no_task(store, db_session, make_principal) -> None:
    author = await make_principal("Author")

    with pytest.raises(InvalidTarget):
        await FanoutCoordinator(store).create_task(_personal(), FanoutTarget.single(None), author.id)

    assert await _count(db_session, Task) == 0
    assert await _count(db_session, TaskDelivery) == 0


@pytest.mark.asyncio
async def test_personal_with_unknown_recipient_leaves_no_task(store, db_session, make_principal) -> None:
    author = await make_principal("Author")
    stranger = uuid.uuid4()

    with pytest.raises(InvalidTarget):
        await FanoutCoordinator(store).create_task(_personal(str(stranger)), FanoutTarget.single(stranger), author.id)

    assert await _count(db_session, Task) == 0


@pytest.mark.asyncio
async def test_broadcast_on_empty_roster_leaves_no_task(store, db_session) -> None:
    with pytest.raises(EmptyRoster):
        await FanoutCoordinator(store).create_task(_broadcast(), FanoutTarget.broadcast(), uuid.uuid4())

    assert await _count(db_session, Task) == 0


@pytest.mark.asyncio
async def test_bulk_insert_failure_rolls_back_task(store, db_session, make_principal) -> None:
    author = await make_principal("Author")
    await make_principal("Other")
    faulty = FaultyStore(store, fail_on={"bulk_insert_deliveries": StoreUnavailable()})

    with pytest.raises(StoreUnavailable):
        await FanoutCoordinator(faulty).create_task(_broadcast(), FanoutTarget.broadcast(), author.id)

    assert await _count(db_session, Task) == 0
    # Compensations ran newest first.
    assert faulty.calls[-2:] == ["delete_deliveries_for_task", "delete_task"]


@pytest.mark.asyncio
async def test_partial_bulk_insert_is_cleaned_up(store, db_session, make_principal) -> None:
    author = await make_principal("Author")
    await make_principal("Other")
    await make_principal("Third")

    with pytest.raises(StoreUnavailable):
        await FanoutCoordinator(PartialInsertStore(store)).create_task(
            _broadcast(), FanoutTarget.broadcast(), author.id
        )

    assert await _count(db_session, Task) == 0
    assert await _count(db_session, TaskDelivery) == 0


@pytest.mark.asyncio
async def test_roster_fetch_failure_rolls_back_task(store, db_session, make_principal) -> None:
    author = await make_principal("Author")
    faulty = FaultyStore(store, fail_on={"get_roster_snapshot": StoreTimeout()})

    with pytest.raises(StoreTimeout):
        await FanoutCoordinator(faulty).create_task(_broadcast(), FanoutTarget.broadcast(), author.id)

    assert await _count(db_session, Task) == 0
    # Recipients were never resolved, so only the task delete was registered.
    assert "delete_deliveries_for_task" not in faulty.calls


@pytest.mark.asyncio
async def test_failed_compensation_does_not_mask_original_error(store, db_session, make_principal) -> None:
    author = await make_principal("Author")
    faulty = FaultyStore(
        store,
        fail_on={
            "bulk_insert_deliveries": StoreUnavailable(),
            "delete_task": StoreTimeout(),
        },
    )

    with pytest.raises(StoreUnavailable):
        await FanoutCoordinator(faulty).create_task(_broadcast(), FanoutTarget.broadcast(), author.id)

    # The orphan stays behind because its delete failed; the caller still sees the root cause.
    assert await _count(db_session, Task) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("due_at", ["next tuesday", "0", "1700000000", "2030-01-15", 1700000000])
async def test_validation_reports_every_bad_field(store, db_session, due_at) -> None:
    payload = _broadcast(title="   ", priority="urgent", due_at=due_at)

    with pytest.raises(ValidationError) as exc_info:
        await FanoutCoordinator(store).create_task(payload, FanoutTarget.broadcast(), uuid.uuid4())

    assert set(exc_info.value.errors) == {"title", "priority", "due_at"}
    assert await _count(db_session, Task) == 0


@pytest.mark.asyncio
async def test_kind_must_match_target(store) -> None:
    with pytest.raises(ValidationError) as exc_info:
        await FanoutCoordinator(store).create_task(_personal(), FanoutTarget.broadcast(), uuid.uuid4())

    assert set(exc_info.value.errors) == {"kind"}


@pytest.mark.asyncio
async def test_title_is_trimmed_and_due_date_optional(store, make_principal) -> None:
    author = await make_principal("Author")

    result = await FanoutCoordinator(store).create_task(
        _broadcast(title="  Quiz  ", due_at=None), FanoutTarget.broadcast(), author.id
    )

    assert result.task.title == "Quiz"
    assert result.task.due_at is None


@pytest.mark.asyncio
async def test_saga_runs_compensations_in_reverse_and_survives_failures() -> None:
    ran = []

    async def ok(label):
        ran.append(label)

    async def boom():
        ran.append("boom")
        raise RuntimeError("compensation failed")

    saga = Saga("test")
    saga.add_compensation("first", lambda: ok("first"))
    saga.add_compensation("second", boom)
    saga.add_compensation("third", lambda: ok("third"))

    failures = await saga.compensate()

    assert saga.steps == ["first", "second", "third"]
    assert ran == ["third", "boom", "first"]
    assert [step for step, _ in failures] == ["second"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "due_at",
    ["2030-01-15T08:00:00Z", "2030-01-15T08:00:00+02:00", "2030-01-15T08:00:00"],
)
async def test_due_date_accepts_full_timestamps(store, make_principal, due_at) -> None:
    author = await make_principal("Author")

    result = await FanoutCoordinator(store).create_task(
        _broadcast(due_at=due_at), FanoutTarget.broadcast(), author.id
    )

    assert result.task.due_at is not None
    assert (result.task.due_at.year, result.task.due_at.month, result.task.due_at.day) == (2030, 1, 15)


@pytest.mark.asyncio
async def test_null_title_and_priority_are_reported_together(store) -> None:
    payload = _broadcast(title=None, priority=None)

    with pytest.raises(ValidationError) as exc_info:
        await FanoutCoordinator(store).create_task(payload, FanoutTarget.broadcast(), uuid.uuid4())

    assert set(exc_info.value.errors) == {"title", "priority"}
