from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status

from ..dependencies import get_task_service
from ..models import TaskStatus
from ..schemas.task import DeleteCompletedResult, Task as TaskSchema, TaskCreate, TaskStats, TaskUpdate
from ..services.tasks import TaskService
from .auth import authenticated_caller

router = APIRouter()


@router.get("/tasks", response_model=List[TaskSchema])
def list_tasks(
    status: Optional[TaskStatus] = None,
    caller_id: str = Depends(authenticated_caller),
    service: TaskService = Depends(get_task_service),
):
    """All of the caller's tasks, newest first, optionally filtered by status."""
    if status is None:
        return service.list_tasks(caller_id)
    return service.list_tasks_by_status(caller_id, status)


@router.post("/tasks", response_model=TaskSchema, status_code=status.HTTP_201_CREATED)
def create_task(
    task: TaskCreate,
    caller_id: str = Depends(authenticated_caller),
    service: TaskService = Depends(get_task_service),
):
    return service.create_task(caller_id, task)


@router.get("/tasks/stats", response_model=TaskStats)
def get_task_stats(
    caller_id: str = Depends(authenticated_caller),
    service: TaskService = Depends(get_task_service),
):
    return service.get_task_stats(caller_id)


@router.get("/tasks/upcoming", response_model=List[TaskSchema])
def list_upcoming_tasks(
    before: Optional[int] = None,
    caller_id: str = Depends(authenticated_caller),
    service: TaskService = Depends(get_task_service),
):
    """Tasks with a due date, earliest first; ``before`` is epoch milliseconds."""
    return service.list_upcoming_tasks(caller_id, before)


@router.delete("/tasks/completed", response_model=DeleteCompletedResult)
def delete_completed_tasks(
    caller_id: str = Depends(authenticated_caller),
    service: TaskService = Depends(get_task_service),
):
    return service.delete_completed_tasks(caller_id)


@router.get("/tasks/{task_id}", response_model=TaskSchema)
def get_task(
    task_id: str,
    caller_id: str = Depends(authenticated_caller),
    service: TaskService = Depends(get_task_service),
):
    return service.get_task(caller_id, task_id)


@router.patch("/tasks/{task_id}", response_model=TaskSchema)
def update_task(
    task_id: str,
    task_update: TaskUpdate,
    caller_id: str = Depends(authenticated_caller),
    service: TaskService = Depends(get_task_service),
):
    return service.update_task(caller_id, task_id, task_update)


@router.patch("/tasks/{task_id}/complete", response_model=TaskSchema)
def mark_task_complete(
    task_id: str,
    caller_id: str = Depends(authenticated_caller),
    service: TaskService = Depends(get_task_service),
):
    return service.complete_task(caller_id, task_id)


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: str,
    caller_id: str = Depends(authenticated_caller),
    service: TaskService = Depends(get_task_service),
):
    service.delete_task(caller_id, task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
