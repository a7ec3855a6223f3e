from typing import List, Optional

from fastapi import APIRouter, Depends

from ..dependencies import get_dashboard
from ..schemas.task import Task as TaskSchema, TaskStats
from ..services.dashboard import Dashboard
from .auth import authenticated_caller

router = APIRouter()


@router.get("/summary", response_model=TaskStats)
def summary(
    caller_id: str = Depends(authenticated_caller),
    dashboard: Dashboard = Depends(get_dashboard),
):
    return dashboard.summary(caller_id)


@router.get("/recent", response_model=List[TaskSchema])
def recent(
    limit: Optional[int] = None,
    caller_id: str = Depends(authenticated_caller),
    dashboard: Dashboard = Depends(get_dashboard),
):
    """Most recently updated tasks for the dashboard table."""
    return dashboard.recent(caller_id, limit)
