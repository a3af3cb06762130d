"""Referral code generation and redemption."""

import secrets
from dataclasses import dataclass

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from reward_service.errors import (
    AlreadyRedeemedError,
    ReferrerNotFoundError,
    SelfRedemptionError,
    UserNotFoundError,
)
from reward_service.ledger.service import PointsLedger, RewardLedger
from reward_service.logging_config import get_logger
from reward_service.storage.db import Database, db
from reward_service.storage.models import ReferralRedemption, UserAccount

logger = get_logger(__name__)

# Points paid per redemption
REFERRER_BONUS = 100  # Owner of the code
REDEEMER_BONUS = 25  # User who presented the code

# Exclude confusing characters: 0, O, I, l, 1
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 10


def generate_code(length: int = CODE_LENGTH) -> str:
    """Generate a readable referral code, e.g. ABC23XYZ."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def generate_unique_code(session: Session, length: int = CODE_LENGTH) -> str:
    """Generate a referral code not yet owned by any account.

    Raises:
        RuntimeError: If no free code was found after MAX_CODE_ATTEMPTS
    """
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_code(length)
        taken = session.scalar(select(exists().where(UserAccount.referral_code == code)))
        if not taken:
            return code

    raise RuntimeError("could not generate a unique referral code")


@dataclass(frozen=True)
class Redemption:
    """Outcome of a successful redemption."""

    user_id: int
    referral_code: str
    referrer_points: int
    redeemer_points: int
    referrers_credited: int


class ReferralRedeemer:
    """Pays both parties of a referral exactly once, atomically.

    All checks and both credits run in one transaction: either the
    referrer and the redeemer are both credited and the redemption is
    recorded, or nothing changes.
    """

    def __init__(
        self,
        ledger: PointsLedger | None = None,
        database: Database | None = None,
        referrer_bonus: int = REFERRER_BONUS,
        redeemer_bonus: int = REDEEMER_BONUS,
    ):
        """Initialize the redeemer.

        Args:
            ledger: Ledger used for both credits (defaults to RewardLedger)
            database: Database to use (defaults to the global instance)
            referrer_bonus: Points for the code owner
            redeemer_bonus: Points for the redeeming user
        """
        self.db = database or db
        self.ledger = ledger or RewardLedger(self.db)
        self.referrer_bonus = referrer_bonus
        self.redeemer_bonus = redeemer_bonus
        self.logger = get_logger(__name__)

    def redeem(self, user_id: int, referral_code: str) -> Redemption:
        """Redeem ``referral_code`` on behalf of ``user_id``.

        Args:
            user_id: Redeeming user
            referral_code: Code presented by the user

        Returns:
            Redemption details

        Raises:
            ReferrerNotFoundError: If no account owns the code
            UserNotFoundError: If the redeeming user does not exist
            SelfRedemptionError: If the code is the user's own
            AlreadyRedeemedError: If the user already redeemed this code
        """
        code = (referral_code or "").strip()

        with self.db.session() as session:
            if not code or not session.scalar(
                select(exists().where(UserAccount.referral_code == code))
            ):
                self.logger.info("referral_redeem_rejected", user_id=user_id, reason="referrer_not_found")
                raise ReferrerNotFoundError()

            # Lock the redeemer row so concurrent redemptions by the same
            # user serialize on the duplicate check below
            row = session.execute(
                select(UserAccount.referral_code)
                .where(UserAccount.id == user_id)
                .with_for_update()
            ).first()
            if row is None:
                self.logger.info("referral_redeem_rejected", user_id=user_id, reason="user_not_found")
                raise UserNotFoundError(user_id)

            if row.referral_code == code:
                self.logger.info("referral_redeem_rejected", user_id=user_id, reason="self_redemption")
                raise SelfRedemptionError()

            already_redeemed = session.scalar(
                select(
                    exists().where(
                        ReferralRedemption.user_id == user_id,
                        ReferralRedemption.referral_code == code,
                    )
                )
            )
            if already_redeemed:
                self.logger.info("referral_redeem_rejected", user_id=user_id, reason="already_redeemed")
                raise AlreadyRedeemedError()

            referrers_credited = self.ledger.credit_by_referral_code(session, code, self.referrer_bonus)
            self.ledger.credit(session, user_id, self.redeemer_bonus)

            session.add(
                ReferralRedemption(
                    user_id=user_id,
                    referral_code=code,
                    referrer_points=self.referrer_bonus,
                    redeemer_points=self.redeemer_bonus,
                )
            )
            try:
                session.flush()
            except IntegrityError as e:
                # Lost a race against a concurrent redemption of the same pair
                raise AlreadyRedeemedError() from e

        self.logger.info(
            "referral_redeemed",
            user_id=user_id,
            referral_code=code,
            referrers_credited=referrers_credited,
            referrer_points=self.referrer_bonus,
            redeemer_points=self.redeemer_bonus,
        )

        return Redemption(
            user_id=user_id,
            referral_code=code,
            referrer_points=self.referrer_bonus,
            redeemer_points=self.redeemer_bonus,
            referrers_credited=referrers_credited,
        )
