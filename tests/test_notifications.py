"""Task notifications: fan-out on task events and the recipient inbox."""

import uuid
from datetime import datetime, timezone

import pytest

from app.api.v1.notifications import service as notification_service
from app.core.enums import NotificationEvent, TaskKind, TaskPriority
from app.core.exceptions import StoreUnavailable
from app.core.schemas import NewTask, TaskRecord
from tests.fakes import FaultyStore


def test_actor_is_not_notified_of_own_action() -> None:
    actor, other = uuid.uuid4(), uuid.uuid4()
    now = datetime.now(timezone.utc)
    task = TaskRecord(
        id=uuid.uuid4(),
        title="Essay",
        priority=TaskPriority.low,
        kind=TaskKind.broadcast,
        created_by=actor,
        created_at=now,
        updated_at=now,
    )

    built = notification_service.build_task_notifications(NotificationEvent.NEW_TASK, task, actor, [actor, other])

    assert [n.recipient_id for n in built] == [other]
    assert built[0].title == "New class task: Essay"
    assert built[0].entity_id == task.id
    assert built[0].link_to == notification_service.TASKS_LINK


@pytest.mark.asyncio
async def test_notification_failure_does_not_fail_the_operation(store, make_principal) -> None:
    actor = await make_principal("A")
    other = await make_principal("B")
    task = await store.insert_task(NewTask(title="Essay", kind=TaskKind.broadcast, created_by=actor.id))
    faulty = FaultyStore(store, fail_on={"insert_notifications": StoreUnavailable()})

    sent = await notification_service.notify_task_event(
        faulty, NotificationEvent.TASK_UPDATED, task, actor.id, [other.id]
    )

    assert sent == 0
    assert faulty.calls == ["insert_notifications"]


@pytest.mark.asyncio
async def test_broadcast_creation_notifies_everyone_but_author(client, make_principal, auth_headers) -> None:
    leader = await make_principal("L", role="class_leader")
    b = await make_principal("B")
    c = await make_principal("C")

    res = await client.post(
        "/api/v1/tasks",
        json={"title": "Lab prep", "kind": "broadcast"},
        headers=auth_headers(leader),
    )
    task_id = res.json()["task_id"]

    for principal in (b, c):
        res = await client.get("/api/v1/notifications", headers=auth_headers(principal))
        [note] = res.json()
        assert note["event_type"] == "new_task"
        assert note["entity_id"] == task_id
        assert note["actor_id"] == str(leader.id)
        assert note["read_at"] is None

    res = await client.get("/api/v1/notifications", headers=auth_headers(leader))
    assert res.json() == []


@pytest.mark.asyncio
async def test_update_and_delete_notify_recipients(client, make_principal, auth_headers) -> None:
    author = await make_principal("Author")
    recipient = await make_principal("Recipient")
    res = await client.post(
        "/api/v1/tasks",
        json={"title": "Fix report", "kind": "personal", "assigned_to": str(recipient.id)},
        headers=auth_headers(author),
    )
    task_id = res.json()["task_id"]

    await client.patch(f"/api/v1/tasks/{task_id}", json={"priority": "high"}, headers=auth_headers(author))
    await client.delete(f"/api/v1/tasks/{task_id}", headers=auth_headers(author))

    res = await client.get("/api/v1/notifications", headers=auth_headers(recipient))
    events = sorted(n["event_type"] for n in res.json())
    assert events == ["new_personal_task", "task_deleted", "task_updated"]


@pytest.mark.asyncio
async def test_inbox_read_and_delete_are_owner_only(client, make_principal, auth_headers) -> None:
    leader = await make_principal("L", role="class_leader")
    b = await make_principal("B")
    await client.post("/api/v1/tasks", json={"title": "Quiz", "kind": "broadcast"}, headers=auth_headers(leader))
    [note] = (await client.get("/api/v1/notifications", headers=auth_headers(b))).json()
    url = f"/api/v1/notifications/{note['id']}"

    res = await client.patch(url, json={"read": True}, headers=auth_headers(leader))
    assert res.status_code == 404

    res = await client.patch(url, json={"read": True}, headers=auth_headers(b))
    assert res.status_code == 200
    assert res.json()["read_at"] is not None

    res = await client.patch(url, json={"read": False}, headers=auth_headers(b))
    assert res.json()["read_at"] is None

    res = await client.delete(url, headers=auth_headers(leader))
    assert res.status_code == 404
    res = await client.delete(url, headers=auth_headers(b))
    assert res.status_code == 204
    res = await client.get("/api/v1/notifications", headers=auth_headers(b))
    assert res.json() == []
