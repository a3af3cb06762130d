"""Referral system.

A user presents another account's referral code:
- the code owner gets 100 points
- the presenting user gets 25 points
Each user can redeem a given code once, and never their own.
"""

from reward_service.referral.service import (
    REDEEMER_BONUS,
    REFERRER_BONUS,
    Redemption,
    ReferralRedeemer,
    generate_unique_code,
)

__all__ = [
    "REDEEMER_BONUS",
    "REFERRER_BONUS",
    "Redemption",
    "ReferralRedeemer",
    "generate_unique_code",
]
