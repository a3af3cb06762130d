"""Tests for the points ledger and fixed-reward tasks."""

from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import func, select

from reward_service.errors import UnknownTaskError, UserNotFoundError, ValidationError
from reward_service.ledger.tasks import TASK_REWARDS, TaskService
from reward_service.storage.models import UserAccount


class TestAddPoints:
    """Tests for RewardLedger.add_points."""

    def test_add_points_increments_score(self, ledger, make_user):
        """Test that points accumulate on the account."""
        user = make_user()

        ledger.add_points(user.id, 50)
        ledger.add_points(user.id, 75)

        assert ledger.get_balance(user.id) == 125

    def test_new_account_starts_at_zero(self, ledger, make_user):
        """Test the initial balance."""
        user = make_user()
        assert ledger.get_balance(user.id) == 0

    def test_zero_points_allowed(self, ledger, make_user):
        """Test that a zero credit is a no-op rather than an error."""
        user = make_user()

        ledger.add_points(user.id, 0)

        assert ledger.get_balance(user.id) == 0

    def test_negative_points_rejected(self, ledger, make_user):
        """Test that the ledger never debits."""
        user = make_user()

        with pytest.raises(ValidationError):
            ledger.add_points(user.id, -10)

        assert ledger.get_balance(user.id) == 0

    def test_unknown_user_raises_and_creates_nothing(self, ledger, database):
        """Test that crediting a missing user does not create a row."""
        with pytest.raises(UserNotFoundError):
            ledger.add_points(9999, 100)

        with database.session() as session:
            assert session.scalar(select(func.count()).select_from(UserAccount)) == 0

    def test_other_users_unaffected(self, ledger, make_user):
        """Test that a credit touches only the target account."""
        alice = make_user()
        bob = make_user()

        ledger.add_points(alice.id, 30)

        assert ledger.get_balance(alice.id) == 30
        assert ledger.get_balance(bob.id) == 0

    def test_get_balance_unknown_user(self, ledger):
        """Test that reading a missing balance raises."""
        with pytest.raises(UserNotFoundError):
            ledger.get_balance(12345)


class TestConcurrentCredits:
    """Relative increments do not lose updates."""

    def test_parallel_add_points_sum_exactly(self, ledger, make_user):
        """Test that 50 parallel credits of 10 points add up to 500."""
        user = make_user()

        with ThreadPoolExecutor(max_workers=10) as pool:
            futures = [pool.submit(ledger.add_points, user.id, 10) for _ in range(50)]
            for future in futures:
                future.result()

        assert ledger.get_balance(user.id) == 500


class TestCreditByReferralCode:
    """Tests for RewardLedger.credit_by_referral_code."""

    def test_credits_owner_of_code(self, ledger, database, make_user):
        """Test that the owner of a code is credited and counted."""
        owner = make_user(referral_code="OWNER123")

        with database.session() as session:
            credited = ledger.credit_by_referral_code(session, "OWNER123", 100)

        assert credited == 1
        assert ledger.get_balance(owner.id) == 100

    def test_unknown_code_credits_nobody(self, ledger, database, make_user):
        """Test that an unowned code updates zero rows."""
        user = make_user()

        with database.session() as session:
            credited = ledger.credit_by_referral_code(session, "NOBODY99", 100)

        assert credited == 0
        assert ledger.get_balance(user.id) == 0


class TestLeaderboard:
    """Tests for RewardLedger.leaderboard."""

    def test_ordered_by_score_then_id(self, ledger, make_user):
        """Test ordering and tie-breaking."""
        first = make_user()
        second = make_user()
        third = make_user()
        ledger.add_points(second.id, 200)
        ledger.add_points(first.id, 50)
        ledger.add_points(third.id, 50)

        board = ledger.leaderboard()

        assert [user.id for user in board] == [second.id, first.id, third.id]

    def test_limit(self, ledger, make_user):
        """Test that the limit caps the row count."""
        for _ in range(4):
            make_user()

        assert len(ledger.leaderboard(2)) == 2


class TestTaskService:
    """Tests for TaskService."""

    def test_reward_table(self):
        """Test the fixed reward per task."""
        assert TASK_REWARDS == {"telegram-sign": 50, "x-sign": 75, "some-task": 100}

    @pytest.mark.parametrize("task_name, points", sorted(TASK_REWARDS.items()))
    def test_complete_credits_task_reward(self, ledger, make_user, task_name, points):
        """Test that each task credits its reward."""
        user = make_user()
        tasks = TaskService(ledger)

        assert tasks.complete(user.id, task_name) == points
        assert ledger.get_balance(user.id) == points

    def test_unknown_task(self, ledger, make_user):
        """Test that an unknown task credits nothing."""
        user = make_user()
        tasks = TaskService(ledger)

        with pytest.raises(UnknownTaskError) as exc_info:
            tasks.complete(user.id, "moon-landing")

        assert exc_info.value.task_name == "moon-landing"
        assert ledger.get_balance(user.id) == 0

    def test_unknown_user(self, ledger):
        """Test that completing a task for a missing user fails."""
        with pytest.raises(UserNotFoundError):
            TaskService(ledger).complete(4242, "x-sign")

    def test_custom_reward_table(self, ledger, make_user):
        """Test that the reward table can be overridden."""
        user = make_user()
        tasks = TaskService(ledger, rewards={"daily-login": 5})

        tasks.complete(user.id, "daily-login")

        assert ledger.get_balance(user.id) == 5
        with pytest.raises(UnknownTaskError):
            tasks.reward_for("x-sign")
