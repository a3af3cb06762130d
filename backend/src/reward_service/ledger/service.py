"""Points accounting for user accounts."""

from typing import Protocol

from sqlalchemy import exists, select, update
from sqlalchemy.orm import Session

from reward_service.errors import UserNotFoundError, ValidationError
from reward_service.logging_config import get_logger
from reward_service.storage.db import Database, db
from reward_service.storage.models import UserAccount, utcnow

logger = get_logger(__name__)


class PointsLedger(Protocol):
    """Capabilities the referral redeemer needs from a ledger.

    Both methods run inside a caller-owned session so several credits can
    share one transaction.
    """

    def credit(self, session: Session, user_id: int, points: int) -> None:
        ...

    def credit_by_referral_code(self, session: Session, referral_code: str, points: int) -> int:
        ...


class RewardLedger:
    """Existence-checked, relative score increments.

    Scores are never read, modified and written back by the caller: every
    credit is a single ``score = score + :points`` statement, so concurrent
    rewards for the same user cannot overwrite each other.
    """

    def __init__(self, database: Database | None = None):
        """Initialize the ledger.

        Args:
            database: Database to use (defaults to the global instance)
        """
        self.db = database or db
        self.logger = get_logger(__name__)

    # ==================== COMPOSABLE PRIMITIVES ====================

    @staticmethod
    def user_exists(session: Session, user_id: int) -> bool:
        return bool(session.scalar(select(exists().where(UserAccount.id == user_id))))

    @staticmethod
    def _check_points(points: int) -> None:
        if points < 0:
            raise ValidationError("points must be non-negative")

    def credit(self, session: Session, user_id: int, points: int) -> None:
        """Add points to one user inside an existing session.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        self._check_points(points)

        if not self.user_exists(session, user_id):
            raise UserNotFoundError(user_id)

        session.execute(
            update(UserAccount)
            .where(UserAccount.id == user_id)
            .values(score=UserAccount.score + points, updated_at=utcnow())
        )

    def credit_by_referral_code(self, session: Session, referral_code: str, points: int) -> int:
        """Add points to every account owning ``referral_code``.

        Returns:
            Number of accounts credited
        """
        self._check_points(points)

        result = session.execute(
            update(UserAccount)
            .where(UserAccount.referral_code == referral_code)
            .values(score=UserAccount.score + points, updated_at=utcnow())
        )
        return result.rowcount

    # ==================== STANDALONE OPERATIONS ====================

    def add_points(self, user_id: int, points: int) -> None:
        """Add points to a user in its own transaction.

        Args:
            user_id: User ID
            points: Non-negative number of points

        Raises:
            UserNotFoundError: If the user does not exist (no row is created)
            ValidationError: If points is negative
            StorageTimeoutError: If the store does not answer in time
        """
        with self.db.session() as session:
            self.credit(session, user_id, points)

        self.logger.info("points_added", user_id=user_id, points=points)

    def get_balance(self, user_id: int) -> int:
        """Get a user's current score.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        with self.db.session() as session:
            score = session.scalar(select(UserAccount.score).where(UserAccount.id == user_id))

        if score is None:
            raise UserNotFoundError(user_id)
        return score

    def leaderboard(self, limit: int | None = None) -> list[UserAccount]:
        """List users by score, highest first.

        Args:
            limit: Maximum number of rows (None = all)
        """
        query = select(UserAccount).order_by(UserAccount.score.desc(), UserAccount.id.asc())
        if limit is not None:
            query = query.limit(limit)

        with self.db.session() as session:
            return list(session.scalars(query).all())
