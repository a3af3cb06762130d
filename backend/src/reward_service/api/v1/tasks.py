"""Task completion API v1 endpoints."""

from fastapi import APIRouter, Depends

from reward_service.api.dependencies import get_ledger, get_task_service
from reward_service.api.v1.auth import CamelModel
from reward_service.auth.middleware import require_auth
from reward_service.ledger.service import RewardLedger
from reward_service.ledger.tasks import TaskService

router = APIRouter(prefix="/tasks", tags=["tasks"])


class TaskInfo(CamelModel):
    name: str
    points: int


class TaskCompletedResponse(CamelModel):
    task: str
    points_added: int
    score: int


@router.get("", response_model=list[TaskInfo])
def list_tasks(task_service: TaskService = Depends(get_task_service)):
    """Available tasks and their rewards."""
    return [TaskInfo(name=name, points=points) for name, points in task_service.rewards.items()]


@router.post("/{task_name}/complete", response_model=TaskCompletedResponse, response_model_by_alias=True)
def complete_task(
    task_name: str,
    user_id: int = Depends(require_auth),
    task_service: TaskService = Depends(get_task_service),
    ledger: RewardLedger = Depends(get_ledger),
):
    """Credit the task's fixed reward to the authenticated user."""
    points = task_service.complete(user_id, task_name)
    return TaskCompletedResponse(task=task_name, points_added=points, score=ledger.get_balance(user_id))
