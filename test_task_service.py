from unittest.mock import patch

import pytest

from taskboard.errors import Forbidden, InvalidInput, NotFound, RateLimited, Unauthenticated
from taskboard.models import TaskPriority, TaskStatus
from taskboard.schemas.task import TaskCreate, TaskUpdate
from taskboard.store import task_store

from conftest import START_MS


def _create(service, caller="alice", **fields):
    fields.setdefault("title", "Task")
    return service.create_task(caller, TaskCreate(**fields))


def test_create_normalizes_and_stores(service, session):
    task = _create(
        service,
        title="  Plan   the\tsprint ",
        description="  notes  ",
        priority=TaskPriority.MEDIUM,
        due_date=START_MS + 60000,
    )

    stored = task_store.get_task_by_id(session, task.id)
    assert stored.title == "Plan the sprint"
    assert stored.description == "notes"
    assert stored.priority == TaskPriority.MEDIUM
    assert stored.due_date == START_MS + 60000
    assert stored.status == TaskStatus.TODO
    assert stored.owner_id == "alice"


def test_create_requires_caller(service):
    with pytest.raises(Unauthenticated):
        service.create_task(None, TaskCreate(title="x"))


@pytest.mark.parametrize("title", ["   ", "a" * 201])
def test_create_rejects_bad_titles(service, title):
    with pytest.raises(InvalidInput):
        _create(service, title=title)


def test_create_accepts_200_character_title(service):
    assert _create(service, title="a" * 200).title == "a" * 200


def test_create_rejects_long_description(service):
    with pytest.raises(InvalidInput) as exc:
        _create(service, description="d" * 2001)
    assert "2000" in exc.value.detail


def test_create_accepts_past_due_date(service):
    task = _create(service, due_date=START_MS - 1000)
    assert task.due_date == START_MS - 1000


def test_create_rejects_nan_due_date(service):
    with pytest.raises(InvalidInput):
        _create(service, due_date=float("nan"))


@pytest.mark.parametrize("due_date", [1e19, START_MS + 0.5])
def test_create_rejects_unstorable_due_dates(service, session, due_date):
    with pytest.raises(InvalidInput):
        _create(service, due_date=due_date)
    assert task_store.list_tasks_by_owner(session, "alice") == []


def test_update_rejects_fractional_due_date(service):
    task = _create(service, due_date=START_MS + 1000)
    with pytest.raises(InvalidInput):
        service.update_task("alice", task.id, TaskUpdate(due_date=START_MS + 1000.5))
    assert service.get_task("alice", task.id).due_date == START_MS + 1000


def test_create_is_rate_limited_after_burst(service, clock):
    for i in range(5):
        _create(service, title=f"t{i}")

    with pytest.raises(RateLimited) as exc:
        _create(service, title="one too many")
    assert exc.value.retry_after_ms > 0

    clock.advance(exc.value.retry_after_ms)
    _create(service, title="after waiting")


def test_rate_limit_is_checked_before_validation(service):
    for i in range(5):
        _create(service, title=f"t{i}")
    with pytest.raises(RateLimited):
        _create(service, title="   ")


def test_update_status_maintains_completed_at(service, clock):
    task = _create(service)

    clock.advance(1000)
    done = service.update_task("alice", task.id, TaskUpdate(status=TaskStatus.COMPLETED))
    assert done.completed_at == START_MS + 1000

    reopened = service.update_task("alice", task.id, TaskUpdate(status=TaskStatus.TODO))
    assert reopened.completed_at is None

    wip = service.update_task("alice", task.id, TaskUpdate(status=TaskStatus.IN_PROGRESS))
    assert wip.completed_at is None


def test_complete_task_shortcut(service):
    task = _create(service)
    done = service.complete_task("alice", task.id)
    assert done.status == TaskStatus.COMPLETED
    assert done.completed_at is not None


def test_update_by_non_owner_is_forbidden_and_leaves_task_unchanged(service, session):
    task = _create(service, title="mine")

    with pytest.raises(Forbidden):
        service.update_task("mallory", task.id, TaskUpdate(title="hijacked"))

    session.expire_all()
    assert task_store.get_task_by_id(session, task.id).title == "mine"


def test_delete_by_non_owner_is_forbidden(service, session):
    task = _create(service)
    with pytest.raises(Forbidden):
        service.delete_task("mallory", task.id)
    assert task_store.get_task_by_id(session, task.id)


def test_update_and_delete_missing_task(service):
    with pytest.raises(NotFound):
        service.update_task("alice", "missing", TaskUpdate(title="x"))
    with pytest.raises(NotFound):
        service.delete_task("alice", "missing")


def test_ownership_is_checked_before_validation(service):
    task = _create(service)
    with pytest.raises(Forbidden):
        service.update_task("mallory", task.id, TaskUpdate(title="   "))


def test_update_rejects_null_title_and_status(service):
    task = _create(service)
    with pytest.raises(InvalidInput):
        service.update_task("alice", task.id, TaskUpdate(title=None))
    with pytest.raises(InvalidInput):
        service.update_task("alice", task.id, TaskUpdate(status=None))


def test_update_can_clear_optional_fields(service):
    task = _create(service, description="d", priority=TaskPriority.LOW, due_date=START_MS + 5)
    updated = service.update_task("alice", task.id, TaskUpdate(description=None, priority=None, due_date=None))
    assert updated.description is None
    assert updated.priority is None
    assert updated.due_date is None


def test_update_normalizes_title(service):
    task = _create(service)
    updated = service.update_task("alice", task.id, TaskUpdate(title="  new   name "))
    assert updated.title == "new name"


def test_update_consults_status_transition_rule(service):
    task = _create(service)
    with patch.object(service.validator, "validate_status_transition", wraps=service.validator.validate_status_transition) as check:
        service.update_task("alice", task.id, TaskUpdate(status=TaskStatus.IN_PROGRESS))
    check.assert_called_once_with(TaskStatus.TODO, TaskStatus.IN_PROGRESS)


def test_get_task_hides_other_owners_tasks(service):
    task = _create(service)
    assert service.get_task("alice", task.id).id == task.id
    with pytest.raises(NotFound):
        service.get_task("mallory", task.id)
    with pytest.raises(Unauthenticated):
        service.get_task(None, task.id)


def test_reads_require_caller(service):
    with pytest.raises(Unauthenticated):
        service.list_tasks(None)
    with pytest.raises(Unauthenticated):
        service.get_task_stats("")


def test_listing_operations(service, clock):
    todo = _create(service, title="todo", due_date=START_MS + 2000)
    clock.advance(1)
    wip = _create(service, title="wip", status=TaskStatus.IN_PROGRESS, due_date=START_MS + 1000)
    clock.advance(1)
    _create(service, title="no date")
    _create(service, caller="bob", title="bob", due_date=START_MS)

    assert len(service.list_tasks("alice")) == 3
    assert [t.id for t in service.list_tasks_by_status("alice", TaskStatus.IN_PROGRESS)] == [wip.id]
    assert [t.id for t in service.list_upcoming_tasks("alice")] == [wip.id, todo.id]
    assert [t.id for t in service.list_upcoming_tasks("alice", START_MS + 1500)] == [wip.id]
    assert [t.id for t in service.list_upcoming_tasks("alice", 10 ** 20)] == [wip.id, todo.id]
    assert service.list_upcoming_tasks("alice", -(10 ** 20)) == []

    stats = service.get_task_stats("alice")
    assert (stats.total, stats.todo, stats.in_progress, stats.completed) == (3, 2, 1, 0)


def test_delete_completed_only_removes_callers_completed_tasks(service, session, clock):
    for i in range(3):
        _create(service, title=f"done {i}", status=TaskStatus.COMPLETED)
    clock.advance(60000)
    keep_todo = _create(service, title="todo")
    keep_wip = _create(service, title="wip", status=TaskStatus.IN_PROGRESS)
    bobs = _create(service, caller="bob", title="bob done", status=TaskStatus.COMPLETED)

    result = service.delete_completed_tasks("alice")

    assert result.deleted_count == 3
    remaining = {t.id for t in service.list_tasks("alice")}
    assert remaining == {keep_todo.id, keep_wip.id}
    assert task_store.get_task_by_id(session, bobs.id)


def test_delete_completed_is_limited_per_hour(service):
    for _ in range(5):
        service.delete_completed_tasks("alice")
    with pytest.raises(RateLimited):
        service.delete_completed_tasks("alice")
    # Other callers have their own window.
    assert service.delete_completed_tasks("bob").deleted_count == 0


def test_delete_completed_failure_keeps_earlier_deletions(service, session):
    for i in range(3):
        _create(service, title=f"done {i}", status=TaskStatus.COMPLETED)

    real_delete = task_store.delete_task
    calls = {"n": 0}

    def flaky_delete(db, task_id):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("storage unavailable")
        real_delete(db, task_id)

    with patch.object(task_store, "delete_task", side_effect=flaky_delete):
        with pytest.raises(RuntimeError):
            service.delete_completed_tasks("alice")

    assert len(service.list_tasks_by_status("alice", TaskStatus.COMPLETED)) == 2
