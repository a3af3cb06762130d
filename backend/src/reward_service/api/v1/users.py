"""User and leaderboard API v1 endpoints."""

from fastapi import APIRouter, Depends, Query, status

from reward_service.api.dependencies import get_ledger
from reward_service.api.v1.auth import CamelModel, UserResponse
from reward_service.auth.local import LocalAuthService
from reward_service.auth.middleware import get_auth_service, require_auth
from reward_service.ledger.service import RewardLedger
from reward_service.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


class LeaderboardEntry(CamelModel):
    """Public leaderboard row; no contact details or referral code."""
    id: int
    first_name: str | None = None
    last_name: str | None = None
    score: int


@router.get("/leaderboard", response_model=list[LeaderboardEntry], response_model_by_alias=True)
def get_leaderboard(
    limit: int | None = Query(default=None, ge=1, le=1000),
    ledger: RewardLedger = Depends(get_ledger),
):
    """All users ordered by score, highest first."""
    return [LeaderboardEntry.model_validate(user) for user in ledger.leaderboard(limit)]


@router.get("/me", response_model=UserResponse, response_model_by_alias=True)
def get_me(
    user_id: int = Depends(require_auth),
    auth_service: LocalAuthService = Depends(get_auth_service),
):
    return UserResponse.from_account(auth_service.get_user(user_id))


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_me(
    user_id: int = Depends(require_auth),
    auth_service: LocalAuthService = Depends(get_auth_service),
):
    """Delete the authenticated account."""
    auth_service.delete_user(user_id)


@router.get("/{user_id}", response_model=UserResponse, response_model_by_alias=True)
def get_user(
    user_id: int,
    _: int = Depends(require_auth),
    auth_service: LocalAuthService = Depends(get_auth_service),
):
    return UserResponse.from_account(auth_service.get_user(user_id))
