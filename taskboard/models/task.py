from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import BigInteger, Index
from typing import Optional
from uuid import uuid4
import enum


class TaskStatus(str, enum.Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Task(SQLModel, table=True):
    """Task owned by exactly one user.

    Timestamps are epoch milliseconds. ``completed_at`` is set if and only if
    ``status`` is completed; the task store maintains that on every write.
    """
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_owner_status", "owner_id", "status"),
        Index("ix_tasks_owner_created", "owner_id", "created_at"),
        Index("ix_tasks_owner_due_date", "owner_id", "due_date"),
        Index("ix_tasks_owner_updated", "owner_id", "updated_at"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    owner_id: str = Field(index=True, foreign_key="users.id")
    title: str
    description: Optional[str] = None
    status: TaskStatus = Field(default=TaskStatus.TODO)
    priority: Optional[TaskPriority] = None
    due_date: Optional[int] = Field(default=None, sa_type=BigInteger)
    completed_at: Optional[int] = Field(default=None, sa_type=BigInteger)
    created_at: int = Field(sa_type=BigInteger)
    updated_at: int = Field(sa_type=BigInteger)

    owner: Optional["User"] = Relationship(back_populates="tasks")
