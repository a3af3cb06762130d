"""Points ledger: atomic score increments, fixed task rewards, leaderboard."""

from reward_service.ledger.service import PointsLedger, RewardLedger
from reward_service.ledger.tasks import TASK_REWARDS, TaskService

__all__ = ["PointsLedger", "RewardLedger", "TASK_REWARDS", "TaskService"]
