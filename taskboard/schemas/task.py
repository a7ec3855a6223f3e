from pydantic import BaseModel
from typing import Optional

from ..models.task import TaskPriority, TaskStatus


class TaskCreate(BaseModel):
    """Schema for creating new tasks.

    ``due_date`` is epoch milliseconds; it is accepted as a float so that the
    validation layer, not the parser, decides what counts as a bad timestamp.
    """
    title: str
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[float] = None


class TaskUpdate(BaseModel):
    """Partial patch; only fields present in the request are applied."""
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[float] = None


class Task(BaseModel):
    """Complete task schema with all fields."""
    id: str
    owner_id: str
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: Optional[TaskPriority] = None
    due_date: Optional[int] = None
    completed_at: Optional[int] = None
    created_at: int
    updated_at: int

    class Config:
        from_attributes = True


class TaskStats(BaseModel):
    total: int = 0
    todo: int = 0
    in_progress: int = 0
    completed: int = 0


class DeleteCompletedResult(BaseModel):
    deleted_count: int
