from fastapi import Depends, Request
from sqlmodel import Session

from .config import RATE_LIMIT_MAX_KEYS, RATE_LIMITS, TASK_LIMITS
from .database import get_db
from .rate_limiter import RateLimiter
from .services.dashboard import Dashboard
from .services.tasks import TaskService
from .validation import TaskValidator


def build_rate_limiter() -> RateLimiter:
    return RateLimiter(RATE_LIMITS, max_keys=RATE_LIMIT_MAX_KEYS)


def get_rate_limiter(request: Request) -> RateLimiter:
    """The limiter shared by every request of this process."""
    return request.app.state.rate_limiter


def get_task_service(
    db: Session = Depends(get_db),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> TaskService:
    return TaskService(db, rate_limiter, TaskValidator(TASK_LIMITS))


def get_dashboard(db: Session = Depends(get_db)) -> Dashboard:
    return Dashboard(db, TASK_LIMITS)
