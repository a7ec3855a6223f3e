"""Task service: the externally callable task operations.

Each mutation runs its checks in a fixed order: authenticated caller, rate
limit, existence and ownership of the target task, field validation, then
normalization before the store call. Cheaper checks run first so throttled
or anonymous callers never learn whether a task exists.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlmodel import Session

from ..errors import Forbidden, InvalidInput, NotFound, RateLimited, Unauthenticated
from ..models import Task, TaskStatus
from ..rate_limiter import RateLimiter
from ..schemas.task import DeleteCompletedResult, TaskCreate, TaskStats, TaskUpdate
from ..store import TaskNotFoundError, task_store
from ..validation import (
    TIMESTAMP_MAX_MS,
    TIMESTAMP_MIN_MS,
    TaskValidator,
    ValidationResult,
    normalize_description,
    normalize_title,
)

logger = logging.getLogger(__name__)

CREATE_TASK = "createTask"
UPDATE_TASK = "updateTask"
DELETE_TASK = "deleteTask"
BULK_DELETE = "bulkDelete"


def require_caller(caller_id: Optional[str]) -> str:
    if not caller_id:
        raise Unauthenticated()
    return caller_id


def _get_update_data(task_update: TaskUpdate) -> dict:
    if hasattr(task_update, "model_dump"):
        return task_update.model_dump(exclude_unset=True)
    return task_update.dict(exclude_unset=True)


def _raise_if_invalid(result: ValidationResult) -> None:
    if not result.valid:
        raise InvalidInput(result.error or "Invalid input")


class TaskService:
    def __init__(self, session: Session, rate_limiter: RateLimiter, validator: Optional[TaskValidator] = None):
        self.session = session
        self.rate_limiter = rate_limiter
        self.validator = validator or TaskValidator()

    def _check_rate_limit(self, operation: str, caller_id: str) -> None:
        status = self.rate_limiter.admit(operation, caller_id)
        if not status.allowed:
            raise RateLimited(status.retry_after_ms)

    def _load_owned_task(self, task_id: str, caller_id: str, action: str) -> Task:
        try:
            task = task_store.get_task_by_id(self.session, task_id)
        except TaskNotFoundError:
            raise NotFound()
        if task.owner_id != caller_id:
            logger.warning("Caller %s tried to %s task %s owned by someone else", caller_id, action, task_id)
            raise Forbidden(f"Not authorized to {action} this task")
        return task

    def _check_due_date(self, due_date: Any) -> Optional[int]:
        result = self.validator.validate_due_date(due_date)
        _raise_if_invalid(result)
        if result.warning:
            logger.info("Accepting due date %s: %s", due_date, result.warning)
        return None if due_date is None else int(due_date)

    # ---- reads ----

    def list_tasks(self, caller_id: Optional[str]) -> List[Task]:
        return task_store.list_tasks_by_owner(self.session, require_caller(caller_id))

    def list_tasks_by_status(self, caller_id: Optional[str], status: TaskStatus) -> List[Task]:
        return task_store.list_tasks_by_owner_and_status(self.session, require_caller(caller_id), status)

    def get_task_stats(self, caller_id: Optional[str]) -> TaskStats:
        return task_store.count_tasks_by_status(self.session, require_caller(caller_id))

    def list_upcoming_tasks(self, caller_id: Optional[str], before: Optional[int] = None) -> List[Task]:
        caller_id = require_caller(caller_id)
        if before is not None:
            # Clamp to what the due_date column can hold.
            before = max(TIMESTAMP_MIN_MS, min(int(before), TIMESTAMP_MAX_MS))
        return task_store.list_upcoming_tasks(self.session, caller_id, before)

    def get_task(self, caller_id: Optional[str], task_id: str) -> Task:
        """Another owner's task is reported as missing, not forbidden."""
        caller_id = require_caller(caller_id)
        try:
            task = task_store.get_task_by_id(self.session, task_id)
        except TaskNotFoundError:
            raise NotFound()
        if task.owner_id != caller_id:
            raise NotFound()
        return task

    # ---- mutations ----

    def create_task(self, caller_id: Optional[str], task: TaskCreate) -> Task:
        caller_id = require_caller(caller_id)
        self._check_rate_limit(CREATE_TASK, caller_id)

        _raise_if_invalid(self.validator.validate_title(task.title))
        _raise_if_invalid(self.validator.validate_description(task.description))
        due_date = self._check_due_date(task.due_date)

        created = task_store.create_task(
            self.session,
            caller_id,
            title=normalize_title(task.title),
            description=normalize_description(task.description),
            status=task.status,
            priority=task.priority,
            due_date=due_date,
        )
        logger.info("Task %s created by %s", created.id, caller_id)
        return created

    def update_task(self, caller_id: Optional[str], task_id: str, task_update: TaskUpdate) -> Task:
        caller_id = require_caller(caller_id)
        self._check_rate_limit(UPDATE_TASK, caller_id)
        existing = self._load_owned_task(task_id, caller_id, "update")

        fields: Dict[str, Any] = _get_update_data(task_update)
        if "title" in fields:
            if fields["title"] is None:
                raise InvalidInput("Task title cannot be empty")
            _raise_if_invalid(self.validator.validate_title(fields["title"]))
        if "description" in fields:
            _raise_if_invalid(self.validator.validate_description(fields["description"]))
        if "due_date" in fields:
            fields["due_date"] = self._check_due_date(fields["due_date"])
        if "status" in fields:
            if fields["status"] is None:
                raise InvalidInput("Task status cannot be empty")
            _raise_if_invalid(self.validator.validate_status_transition(existing.status, fields["status"]))

        if "title" in fields:
            fields["title"] = normalize_title(fields["title"])
        if "description" in fields:
            fields["description"] = normalize_description(fields["description"])

        return task_store.patch_task(self.session, task_id, fields)

    def complete_task(self, caller_id: Optional[str], task_id: str) -> Task:
        return self.update_task(caller_id, task_id, TaskUpdate(status=TaskStatus.COMPLETED))

    def delete_task(self, caller_id: Optional[str], task_id: str) -> None:
        caller_id = require_caller(caller_id)
        self._check_rate_limit(DELETE_TASK, caller_id)
        self._load_owned_task(task_id, caller_id, "delete")
        task_store.delete_task(self.session, task_id)
        logger.info("Task %s deleted by %s", task_id, caller_id)

    def delete_completed_tasks(self, caller_id: Optional[str]) -> DeleteCompletedResult:
        """Delete every completed task of the caller, one store call per task.

        Not atomic: if a delete fails the exception propagates and the tasks
        already removed stay removed. Safe to retry.
        """
        caller_id = require_caller(caller_id)
        self._check_rate_limit(BULK_DELETE, caller_id)

        completed = task_store.list_tasks_by_owner_and_status(self.session, caller_id, TaskStatus.COMPLETED)
        task_ids = [task.id for task in completed]
        deleted_count = 0
        for task_id in task_ids:
            task_store.delete_task(self.session, task_id)
            deleted_count += 1

        logger.info("Deleted %d completed tasks for %s", deleted_count, caller_id)
        return DeleteCompletedResult(deleted_count=deleted_count)
