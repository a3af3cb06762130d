"""Referral API v1 endpoints."""

from fastapi import APIRouter, Depends, Request
from pydantic import Field

from reward_service.api.dependencies import get_redeemer
from reward_service.api.rate_limit import REDEEM_LIMIT, limiter
from reward_service.api.v1.auth import CamelModel
from reward_service.auth.local import LocalAuthService
from reward_service.auth.middleware import get_auth_service, require_auth
from reward_service.logging_config import get_logger
from reward_service.referral.service import ReferralRedeemer

logger = get_logger(__name__)

router = APIRouter(prefix="/referral", tags=["referral"])


# ==================== MODELS ====================


class RedeemRequest(CamelModel):
    """Request to redeem another user's referral code."""
    referrer: str = Field(..., min_length=1, max_length=32)


class RedeemResponse(CamelModel):
    message: str
    referrer_points: int
    redeemer_points: int


class ReferralCodeResponse(CamelModel):
    """The authenticated user's own code."""
    code: str | None


# ==================== ENDPOINTS ====================


@router.get("/code", response_model=ReferralCodeResponse)
def get_referral_code(
    user_id: int = Depends(require_auth),
    auth_service: LocalAuthService = Depends(get_auth_service),
):
    return ReferralCodeResponse(code=auth_service.get_user(user_id).referral_code)


@router.post("/redeem", response_model=RedeemResponse, response_model_by_alias=True)
@limiter.limit(REDEEM_LIMIT)
def redeem_referral_code(
    request: Request,
    body: RedeemRequest,
    user_id: int = Depends(require_auth),
    redeemer: ReferralRedeemer = Depends(get_redeemer),
):
    """Redeem a referral code for the authenticated user.

    The code owner and the authenticated user are both credited.
    """
    redemption = redeemer.redeem(user_id, body.referrer)
    return RedeemResponse(
        message="Referrer redeemed",
        referrer_points=redemption.referrer_points,
        redeemer_points=redemption.redeemer_points,
    )
