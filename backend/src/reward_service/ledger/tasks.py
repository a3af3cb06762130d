"""Fixed-reward tasks."""

from reward_service.errors import UnknownTaskError
from reward_service.ledger.service import RewardLedger
from reward_service.logging_config import get_logger

logger = get_logger(__name__)

# Points awarded per completed task
TASK_REWARDS: dict[str, int] = {
    "telegram-sign": 50,
    "x-sign": 75,
    "some-task": 100,
}


class TaskService:
    """Credits the fixed reward of a named task through the ledger."""

    def __init__(self, ledger: RewardLedger | None = None, rewards: dict[str, int] | None = None):
        self.ledger = ledger or RewardLedger()
        self.rewards = dict(rewards if rewards is not None else TASK_REWARDS)

    def reward_for(self, task_name: str) -> int:
        try:
            return self.rewards[task_name]
        except KeyError:
            raise UnknownTaskError(task_name) from None

    def complete(self, user_id: int, task_name: str) -> int:
        """Mark a task complete for a user.

        Returns:
            Points credited
        """
        points = self.reward_for(task_name)
        self.ledger.add_points(user_id, points)

        logger.info("task_completed", user_id=user_id, task=task_name, points=points)
        return points
