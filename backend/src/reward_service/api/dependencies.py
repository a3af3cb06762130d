"""Service lookups for route handlers.

Services are built once in create_app() and stored on app.state.
"""

from fastapi import Request

from reward_service.ledger.service import RewardLedger
from reward_service.ledger.tasks import TaskService
from reward_service.referral.service import ReferralRedeemer


def get_ledger(request: Request) -> RewardLedger:
    return request.app.state.ledger


def get_task_service(request: Request) -> TaskService:
    return request.app.state.task_service


def get_redeemer(request: Request) -> ReferralRedeemer:
    return request.app.state.redeemer
