"""Password hashing and verification."""

from passlib.context import CryptContext

from reward_service.errors import PasswordHashError, PasswordTooShortError
from reward_service.settings import settings

MIN_PASSWORD_LENGTH = 8
BCRYPT_MAX_BYTES = 72


def _truncate_password(password: str) -> str:
    """Truncate password to 72 bytes (bcrypt limit)."""
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES].decode("utf-8", errors="ignore")


class PasswordVerifier:
    """Salted bcrypt hashing with passlib's constant-time comparison.

    The same context hashes refresh tokens, so both kinds of secret share
    one work factor.
    """

    def __init__(self, rounds: int | None = None):
        """Initialize the hashing context.

        Args:
            rounds: bcrypt cost factor (defaults to settings.bcrypt_rounds)
        """
        self.rounds = rounds or settings.bcrypt_rounds
        self.context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=self.rounds,
        )

    def hash(self, password: str) -> str:
        """Hash a password.

        Args:
            password: Plain password

        Returns:
            bcrypt hash string

        Raises:
            PasswordTooShortError: If shorter than MIN_PASSWORD_LENGTH
        """
        if len(password) < MIN_PASSWORD_LENGTH:
            raise PasswordTooShortError(MIN_PASSWORD_LENGTH)
        return self.hash_secret(password)

    def hash_secret(self, secret: str) -> str:
        """Hash an arbitrary secret without the password length policy."""
        return self.context.hash(_truncate_password(secret))

    def verify(self, password: str, hashed: str) -> bool:
        """Verify a password against hash.

        Args:
            password: Plain password
            hashed: Stored hash

        Returns:
            True if matches, False on mismatch

        Raises:
            PasswordHashError: If the stored hash is corrupt or not bcrypt
        """
        try:
            return self.context.verify(_truncate_password(password), hashed)
        except (ValueError, TypeError) as e:
            raise PasswordHashError() from e
