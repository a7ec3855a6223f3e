from . import tasks as task_store
from .tasks import TaskNotFoundError

__all__ = ["task_store", "TaskNotFoundError"]
