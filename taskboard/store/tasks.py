"""Task store: the only module that reads or writes the ``tasks`` table.

Every function takes an open session and nothing else from the request; auth,
rate limiting and ownership are the service layer's business. Each mutation
commits its own transaction.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlmodel import Session, col, select

from ..clock import now_ms
from ..models import Task, TaskPriority, TaskStatus
from ..schemas.task import TaskStats

logger = logging.getLogger(__name__)

PATCHABLE_FIELDS = ("title", "description", "status", "priority", "due_date")


class TaskNotFoundError(LookupError):
    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} does not exist")
        self.task_id = task_id


def create_task(
    session: Session,
    owner_id: str,
    *,
    title: str,
    description: Optional[str] = None,
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    due_date: Optional[int] = None,
) -> Task:
    now = now_ms()
    status = status or TaskStatus.TODO
    task = Task(
        owner_id=owner_id,
        title=title,
        description=description,
        status=status,
        priority=priority,
        due_date=due_date,
        completed_at=now if status == TaskStatus.COMPLETED else None,
        created_at=now,
        updated_at=now,
    )
    session.add(task)
    session.commit()
    session.refresh(task)
    logger.debug("Task created id=%s owner=%s status=%s", task.id, owner_id, status.value)
    return task


def get_task_by_id(session: Session, task_id: str) -> Task:
    task = session.get(Task, task_id)
    if task is None:
        raise TaskNotFoundError(task_id)
    return task


def list_tasks_by_owner(session: Session, owner_id: str) -> List[Task]:
    """All of the owner's tasks, newest created first."""
    query = (
        select(Task)
        .where(Task.owner_id == owner_id)
        .order_by(col(Task.created_at).desc(), col(Task.id).desc())
    )
    return list(session.exec(query).all())


def list_tasks_by_owner_and_status(session: Session, owner_id: str, status: TaskStatus) -> List[Task]:
    query = (
        select(Task)
        .where(Task.owner_id == owner_id, Task.status == status)
        .order_by(col(Task.created_at).desc(), col(Task.id).desc())
    )
    return list(session.exec(query).all())


def list_upcoming_tasks(session: Session, owner_id: str, before: Optional[int] = None) -> List[Task]:
    """Tasks that have a due date, earliest first.

    With ``before`` given, only tasks due at or before it are returned.
    """
    query = select(Task).where(Task.owner_id == owner_id, col(Task.due_date).is_not(None))
    if before is not None:
        query = query.where(col(Task.due_date) <= before)
    tasks = list(session.exec(query.order_by(col(Task.created_at).asc())).all())
    # Stable sort; anything without a due date would sort last.
    tasks.sort(key=lambda t: (t.due_date is None, t.due_date or 0))
    return tasks


def list_recent_tasks(session: Session, owner_id: str, limit: int) -> List[Task]:
    """Most recently updated tasks first, at most ``limit`` rows."""
    query = (
        select(Task)
        .where(Task.owner_id == owner_id)
        .order_by(col(Task.updated_at).desc(), col(Task.created_at).desc())
        .limit(limit)
    )
    return list(session.exec(query).all())


def count_tasks_by_status(session: Session, owner_id: str) -> TaskStats:
    stats = TaskStats()
    for task in list_tasks_by_owner(session, owner_id):
        stats.total += 1
        if task.status == TaskStatus.TODO:
            stats.todo += 1
        elif task.status == TaskStatus.IN_PROGRESS:
            stats.in_progress += 1
        elif task.status == TaskStatus.COMPLETED:
            stats.completed += 1
    return stats


def patch_task(session: Session, task_id: str, fields: Dict[str, Any]) -> Task:
    """Apply the given fields and refresh ``updated_at``.

    ``completed_at`` follows the resulting status: it is stamped when the task
    moves into completed and cleared when it leaves completed.
    """
    unknown = set(fields) - set(PATCHABLE_FIELDS)
    if unknown:
        raise ValueError(f"Fields cannot be patched: {', '.join(sorted(unknown))}")

    task = get_task_by_id(session, task_id)
    previous_status = task.status
    now = now_ms()

    for field, value in fields.items():
        setattr(task, field, value)
    task.updated_at = now

    new_status = fields.get("status")
    if new_status == TaskStatus.COMPLETED:
        task.completed_at = now
    elif new_status is not None and previous_status == TaskStatus.COMPLETED:
        task.completed_at = None

    session.add(task)
    session.commit()
    session.refresh(task)
    logger.debug(
        "Task patched id=%s fields=%s status=%s->%s",
        task_id,
        sorted(fields),
        previous_status.value,
        task.status.value,
    )
    return task


def delete_task(session: Session, task_id: str) -> None:
    task = get_task_by_id(session, task_id)
    session.delete(task)
    session.commit()
    logger.debug("Task deleted id=%s", task_id)


def delete_tasks_by_owner(session: Session, owner_id: str) -> int:
    tasks = list_tasks_by_owner(session, owner_id)
    for task in tasks:
        session.delete(task)
    session.commit()
    logger.info("Deleted %d tasks for owner=%s", len(tasks), owner_id)
    return len(tasks)
