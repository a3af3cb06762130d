"""Shared fixtures: a throwaway SQLite database and services wired to it."""

import pytest

from reward_service.auth.local import LocalAuthService
from reward_service.auth.passwords import PasswordVerifier
from reward_service.auth.tokens import TokenIssuer, TokenValidator
from reward_service.ledger.service import RewardLedger
from reward_service.referral.service import ReferralRedeemer
from reward_service.storage.db import Database

# Lowest bcrypt cost keeps the suite fast
TEST_BCRYPT_ROUNDS = 4
TEST_SECRET = "test-secret-key-0123456789-abcdefghijklmnopqrstuvwxyz"
TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture
def database(tmp_path):
    database = Database(
        f"sqlite:///{tmp_path / 'rewards.db'}",
        timeout_seconds=30,
        echo=False,
    )
    database.create_tables()
    yield database
    database.dispose()


@pytest.fixture
def verifier():
    return PasswordVerifier(rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture
def issuer(verifier):
    return TokenIssuer(verifier)


@pytest.fixture
def validator(verifier):
    return TokenValidator(verifier)


@pytest.fixture
def auth_service(database, verifier, issuer, validator):
    return LocalAuthService(
        database,
        verifier,
        issuer=issuer,
        validator=validator,
        secret_key=TEST_SECRET,
    )


@pytest.fixture
def ledger(database):
    return RewardLedger(database)


@pytest.fixture
def redeemer(database, ledger):
    return ReferralRedeemer(ledger, database)


@pytest.fixture
def make_user(auth_service):
    """Factory registering users with sequential emails."""
    counter = {"n": 0}

    def _make_user(email: str | None = None, referral_code: str | None = None, password: str = TEST_PASSWORD):
        counter["n"] += 1
        return auth_service.register(
            email=email or f"player{counter['n']}@rewards.io",
            password=password,
            first_name="Player",
            last_name=str(counter["n"]),
            referral_code=referral_code,
        )

    return _make_user
