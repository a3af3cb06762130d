"""Access/refresh token issuance and validation.

Access tokens are HS512 JWTs carrying only the subject id and expiry.
Refresh tokens are 32 random bytes, base64-encoded; the caller persists
only their bcrypt hash. The signing secret is passed on every call.
"""

import base64
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from jose import ExpiredSignatureError, JWTError, jwt

from reward_service.auth.passwords import PasswordVerifier
from reward_service.errors import (
    InvalidRefreshTokenError,
    PasswordHashError,
    RandomSourceError,
    TokenExpiredError,
    TokenIssueError,
    TokenValidationError,
)
from reward_service.logging_config import get_logger
from reward_service.settings import settings

logger = get_logger(__name__)

JWT_ALGORITHM = "HS512"
REFRESH_TOKEN_BYTES = 32


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IssuedTokens:
    """Result of a successful issue() call."""

    user_id: int
    access_token: str
    refresh_token: str
    hashed_refresh_token: str
    expires_at: datetime

    def __repr__(self) -> str:
        # Keep secrets out of logs and tracebacks
        return f"IssuedTokens(user_id={self.user_id}, expires_at={self.expires_at.isoformat()})"


class TokenIssuer:
    """Issues a signed access token plus an opaque refresh token."""

    def __init__(
        self,
        verifier: PasswordVerifier | None = None,
        access_token_ttl: timedelta | None = None,
        now: Callable[[], datetime] = _utc_now,
        random_bytes: Callable[[int], bytes] = secrets.token_bytes,
    ):
        self.verifier = verifier or PasswordVerifier()
        self.access_token_ttl = access_token_ttl or timedelta(
            minutes=settings.access_token_expire_minutes
        )
        self._now = now
        self._random_bytes = random_bytes

    def issue(self, user_id: int, secret_key: str) -> IssuedTokens:
        """Issue an access token and a refresh token for a user.

        Args:
            user_id: Subject id
            secret_key: HMAC signing secret

        Returns:
            IssuedTokens with the plaintext refresh token and its hash

        Raises:
            TokenIssueError: If the secret is empty or signing fails
            RandomSourceError: If the secure random source fails
        """
        access_token, expires_at = self.create_access_token(user_id, secret_key)
        refresh_token, hashed_refresh_token = self.create_refresh_token()

        return IssuedTokens(
            user_id=user_id,
            access_token=access_token,
            refresh_token=refresh_token,
            hashed_refresh_token=hashed_refresh_token,
            expires_at=expires_at,
        )

    def create_access_token(self, user_id: int, secret_key: str) -> tuple[str, datetime]:
        """Sign an access token.

        Returns:
            (token, expiry)
        """
        if not secret_key:
            raise TokenIssueError("signing secret is empty")

        issued_at = self._now()
        expires_at = issued_at + self.access_token_ttl
        payload = {
            "sub": str(user_id),
            "exp": expires_at,
            "iat": issued_at,
        }

        try:
            token = jwt.encode(payload, secret_key, algorithm=JWT_ALGORITHM)
        except JWTError as e:
            logger.error("access_token_signing_failed", user_id=user_id, error_type=type(e).__name__)
            raise TokenIssueError() from e

        return token, expires_at

    def create_refresh_token(self) -> tuple[str, str]:
        """Generate a refresh token and its hash.

        Returns:
            (plaintext token, bcrypt hash)
        """
        try:
            raw = self._random_bytes(REFRESH_TOKEN_BYTES)
        except (OSError, NotImplementedError) as e:
            logger.error("refresh_token_generation_failed", error_type=type(e).__name__)
            raise RandomSourceError() from e

        if len(raw) != REFRESH_TOKEN_BYTES:
            raise RandomSourceError()

        refresh_token = base64.b64encode(raw).decode("ascii")
        return refresh_token, self.verifier.hash_secret(refresh_token)


class TokenValidator:
    """Validates access tokens and compares refresh tokens to stored hashes."""

    def __init__(self, verifier: PasswordVerifier | None = None):
        self.verifier = verifier or PasswordVerifier()

    def validate(self, token: str, secret_key: str) -> int:
        """Validate an access token and return its subject id.

        Args:
            token: Encoded JWT
            secret_key: HMAC signing secret

        Returns:
            Subject user id

        Raises:
            TokenExpiredError: If the token is past its expiry
            TokenValidationError: On any other failure
        """
        if not token or not secret_key:
            raise TokenValidationError()

        try:
            header = jwt.get_unverified_header(token)
        except JWTError:
            logger.debug("token_header_unreadable")
            raise TokenValidationError() from None

        if header.get("alg") != JWT_ALGORITHM:
            logger.debug("token_algorithm_rejected")
            raise TokenValidationError()

        try:
            payload = jwt.decode(
                token,
                secret_key,
                algorithms=[JWT_ALGORITHM],
                options={"require_exp": True, "require_sub": True},
            )
        except ExpiredSignatureError:
            raise TokenExpiredError() from None
        except JWTError as e:
            logger.debug("token_verification_failed", error_type=type(e).__name__)
            raise TokenValidationError() from None

        subject = payload.get("sub")
        try:
            return int(subject)
        except (TypeError, ValueError):
            logger.debug("token_subject_invalid")
            raise TokenValidationError() from None

    def validate_refresh_token(self, hashed_refresh_token: str, refresh_token: str) -> None:
        """Check a presented refresh token against its stored hash.

        Raises:
            InvalidRefreshTokenError: On mismatch or unreadable hash
        """
        if not hashed_refresh_token or not refresh_token:
            raise InvalidRefreshTokenError()

        try:
            matches = self.verifier.verify(refresh_token, hashed_refresh_token)
        except PasswordHashError:
            raise InvalidRefreshTokenError() from None

        if not matches:
            raise InvalidRefreshTokenError()
