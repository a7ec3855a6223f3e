from typing import List, Optional

from sqlmodel import Session

from ..config import TASK_LIMITS, TaskLimits
from ..errors import InvalidInput
from ..models import Task
from ..schemas.task import TaskStats
from ..store import task_store
from .tasks import require_caller


class Dashboard:
    """Read-only views for the dashboard widgets."""

    def __init__(self, session: Session, limits: TaskLimits = TASK_LIMITS):
        self.session = session
        self.limits = limits

    def summary(self, caller_id: Optional[str]) -> TaskStats:
        return task_store.count_tasks_by_status(self.session, require_caller(caller_id))

    def recent(self, caller_id: Optional[str], limit: Optional[int] = None) -> List[Task]:
        """Most recently updated tasks, capped at ``recent_tasks_max``."""
        caller_id = require_caller(caller_id)
        if limit is None:
            limit = self.limits.recent_tasks_default
        if limit < 1:
            raise InvalidInput("limit must be at least 1")
        return task_store.list_recent_tasks(self.session, caller_id, min(limit, self.limits.recent_tasks_max))
