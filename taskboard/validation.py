"""Field validation for tasks.

Pure checks with no database access; limits come from the ``TaskLimits``
the validator is built with.
"""
import math
import re
from numbers import Integral, Real
from typing import Any, Callable, Optional

from pydantic import BaseModel

from .clock import now_ms
from .config import TASK_LIMITS, TaskLimits
from .models import TaskStatus

_WHITESPACE_RUN = re.compile(r"\s+")

# Timestamps are whole milliseconds stored in a signed 64-bit column.
TIMESTAMP_MIN_MS = -(2 ** 63)
TIMESTAMP_MAX_MS = 2 ** 63 - 1


class ValidationResult(BaseModel):
    valid: bool
    error: Optional[str] = None
    warning: Optional[str] = None


_OK = ValidationResult(valid=True)


class TaskValidator:
    def __init__(self, limits: TaskLimits = TASK_LIMITS, clock: Callable[[], int] = now_ms):
        self.limits = limits
        self._clock = clock

    def validate_title(self, title: str) -> ValidationResult:
        if not title.strip():
            return ValidationResult(valid=False, error="Task title cannot be empty")
        # Length is checked on the raw input, before trimming.
        if len(title) > self.limits.title_max_length:
            return ValidationResult(
                valid=False,
                error=f"Task title cannot exceed {self.limits.title_max_length} characters",
            )
        return _OK

    def validate_description(self, description: Optional[str] = None) -> ValidationResult:
        if description is None:
            return _OK
        if len(description) > self.limits.description_max_length:
            return ValidationResult(
                valid=False,
                error=f"Task description cannot exceed {self.limits.description_max_length} characters",
            )
        return _OK

    def validate_due_date(self, due_date: Any = None) -> ValidationResult:
        """Past due dates are accepted with a warning."""
        if due_date is None:
            return _OK
        if isinstance(due_date, bool) or not isinstance(due_date, Real):
            return ValidationResult(valid=False, error="Invalid due date timestamp")
        if not isinstance(due_date, Integral) and not math.isfinite(due_date):
            return ValidationResult(valid=False, error="Invalid due date timestamp")
        if due_date != int(due_date) or not TIMESTAMP_MIN_MS <= int(due_date) <= TIMESTAMP_MAX_MS:
            return ValidationResult(valid=False, error="Invalid due date timestamp")
        if due_date < self._clock():
            return ValidationResult(valid=True, warning="Due date is in the past")
        return _OK

    def validate_status_transition(self, current: TaskStatus, new: TaskStatus) -> ValidationResult:
        # Every transition is allowed for now, including completed -> todo.
        return _OK


def normalize_title(title: str) -> str:
    return _WHITESPACE_RUN.sub(" ", title.strip())


def normalize_description(description: Optional[str]) -> Optional[str]:
    if description is None:
        return None
    return description.strip()
