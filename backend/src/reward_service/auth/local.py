"""Local authentication service (email/password) and account management."""

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import delete, exists, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from reward_service.auth.passwords import PasswordVerifier
from reward_service.auth.tokens import IssuedTokens, TokenIssuer, TokenValidator
from reward_service.errors import (
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    ReferralCodeTakenError,
    UserNotFoundError,
)
from reward_service.logging_config import get_logger
from reward_service.referral.service import generate_unique_code
from reward_service.settings import settings
from reward_service.storage.db import Database, db
from reward_service.storage.models import RefreshTokenRecord, UserAccount, utcnow

logger = get_logger(__name__)

# Live refresh tokens kept per user; older sessions are dropped at login
MAX_ACTIVE_REFRESH_TOKENS = 5


@dataclass(frozen=True)
class LoginResult:
    """Authenticated user plus freshly issued tokens."""

    user: UserAccount
    tokens: IssuedTokens


class LocalAuthService:
    """Authentication service for local (email/password) users."""

    def __init__(
        self,
        database: Database | None = None,
        verifier: PasswordVerifier | None = None,
        issuer: TokenIssuer | None = None,
        validator: TokenValidator | None = None,
        secret_key: str | None = None,
        refresh_token_ttl: timedelta | None = None,
    ):
        """Initialize auth service.

        Args:
            database: Database to use (defaults to the global instance)
            verifier: Password hashing context
            issuer: Token issuer (shares the verifier by default)
            validator: Token validator (shares the verifier by default)
            secret_key: JWT signing secret (defaults to settings)
            refresh_token_ttl: Lifetime of stored refresh tokens
        """
        self.db = database or db
        self.verifier = verifier or PasswordVerifier()
        self.issuer = issuer or TokenIssuer(self.verifier)
        self.validator = validator or TokenValidator(self.verifier)
        self.secret_key = settings.jwt_secret_key if secret_key is None else secret_key
        self.refresh_token_ttl = refresh_token_ttl or timedelta(days=settings.refresh_token_expire_days)
        self.logger = get_logger(__name__)
        # Compared against when no usable account exists, so every failed
        # login pays one bcrypt verification
        self._dummy_hash = self.verifier.hash_secret("reward-service-dummy-password")

    # ==================== USER MANAGEMENT ====================

    def register(
        self,
        email: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
        referral_code: str | None = None,
    ) -> UserAccount:
        """Create a new local user.

        Args:
            email: User email
            password: Plain password (min 8 characters)
            first_name: Optional first name
            last_name: Optional last name
            referral_code: The user's own code to share; generated if omitted

        Returns:
            Created user account

        Raises:
            PasswordTooShortError: If the password is too short
            EmailAlreadyRegisteredError: If email already exists
            ReferralCodeTakenError: If the chosen code belongs to someone else
        """
        # Hash first so a short password never reaches the database
        password_hash = self.verifier.hash(password)
        email = email.strip().lower()
        code = referral_code.strip() if referral_code and referral_code.strip() else None

        with self.db.session() as session:
            if session.scalar(select(exists().where(UserAccount.email == email))):
                raise EmailAlreadyRegisteredError()

            if code is None:
                code = generate_unique_code(session)
            elif session.scalar(select(exists().where(UserAccount.referral_code == code))):
                raise ReferralCodeTakenError()

            now = utcnow()
            user = UserAccount(
                email=email,
                first_name=first_name,
                last_name=last_name,
                password_hash=password_hash,
                is_active=True,
                score=0,
                referral_code=code,
                created_at=now,
                updated_at=now,
            )
            session.add(user)
            try:
                session.flush()
            except IntegrityError as e:
                raise EmailAlreadyRegisteredError() from e
            session.refresh(user)

        self.logger.info("user_created", user_id=user.id, email=email)
        return user

    def get_user(self, user_id: int) -> UserAccount:
        """Get user by ID.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        with self.db.session() as session:
            user = session.get(UserAccount, user_id)

        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def get_user_by_email(self, email: str) -> UserAccount | None:
        with self.db.session() as session:
            return session.scalars(
                select(UserAccount).where(UserAccount.email == email.strip().lower())
            ).first()

    def delete_user(self, user_id: int) -> None:
        """Delete a user together with their refresh tokens and redemptions.

        Raises:
            UserNotFoundError: If the user does not exist
        """
        with self.db.session() as session:
            user = session.get(UserAccount, user_id)
            if user is None:
                raise UserNotFoundError(user_id)
            session.delete(user)

        self.logger.info("user_deleted", user_id=user_id)

    # ==================== CREDENTIALS ====================

    def authenticate(self, email: str, password: str) -> UserAccount:
        """Check an email/password pair.

        Unknown email, inactive account and wrong password all raise the
        same error after one hash verification; the reason is only logged.

        Raises:
            InvalidCredentialsError: If the pair does not match an active user
            PasswordHashError: If the stored hash is corrupt
        """
        user = self.get_user_by_email(email)

        if user is None:
            self.verifier.verify(password, self._dummy_hash)
            self.logger.info("authentication_failed", reason="unknown_email")
            raise InvalidCredentialsError()

        if not user.is_active:
            self.verifier.verify(password, self._dummy_hash)
            self.logger.info("authentication_failed", user_id=user.id, reason="inactive")
            raise InvalidCredentialsError()

        if not self.verifier.verify(password, user.password_hash):
            self.logger.info("authentication_failed", user_id=user.id, reason="password_mismatch")
            raise InvalidCredentialsError()

        self.logger.info("user_authenticated", user_id=user.id)
        return user

    # ==================== TOKENS ====================

    def login(self, email: str, password: str) -> LoginResult:
        """Authenticate and issue an access/refresh token pair.

        The refresh token's hash is persisted; the plaintext is only
        returned to the caller. At most MAX_ACTIVE_REFRESH_TOKENS sessions
        stay live per user; the oldest are dropped.
        """
        user = self.authenticate(email, password)
        tokens = self.issuer.issue(user.id, self.secret_key)

        with self.db.session() as session:
            self._store_refresh_token(session, user.id, tokens.hashed_refresh_token)

        self.logger.info("user_logged_in", user_id=user.id)
        return LoginResult(user=user, tokens=tokens)

    def refresh(self, user_id: int, refresh_token: str) -> LoginResult:
        """Exchange a refresh token for a new token pair.

        The presented token is deleted and replaced (rotation). Only the
        newest MAX_ACTIVE_REFRESH_TOKENS live hashes are compared.

        Raises:
            InvalidRefreshTokenError: If no active stored token matches
        """
        now = utcnow()

        with self.db.session() as session:
            records = session.scalars(
                select(RefreshTokenRecord).where(
                    RefreshTokenRecord.user_id == user_id,
                    RefreshTokenRecord.revoked_at.is_(None),
                    RefreshTokenRecord.expires_at > now,
                )
                .order_by(RefreshTokenRecord.id.desc())
                .limit(MAX_ACTIVE_REFRESH_TOKENS)
            ).all()

            match = next(
                (record for record in records if self._refresh_matches(record.token_hash, refresh_token)),
                None,
            )
            user = session.get(UserAccount, user_id)
            if match is None or user is None or not user.is_active:
                self.logger.info("token_refresh_rejected", user_id=user_id)
                raise InvalidRefreshTokenError()

            tokens = self.issuer.issue(user_id, self.secret_key)
            session.delete(match)
            session.flush()
            self._store_refresh_token(session, user_id, tokens.hashed_refresh_token)

        self.logger.info("token_refreshed", user_id=user_id)
        return LoginResult(user=user, tokens=tokens)

    def logout(self, user_id: int) -> int:
        """Revoke every active refresh token of a user.

        Returns:
            Number of tokens revoked
        """
        with self.db.session() as session:
            result = session.execute(
                update(RefreshTokenRecord)
                .where(
                    RefreshTokenRecord.user_id == user_id,
                    RefreshTokenRecord.revoked_at.is_(None),
                )
                .values(revoked_at=utcnow())
            )
            revoked = result.rowcount

        self.logger.info("user_logged_out", user_id=user_id, revoked_tokens=revoked)
        return revoked

    def authenticate_token(self, access_token: str) -> int:
        """Validate an access token with this service's secret.

        Returns:
            Subject user id
        """
        return self.validator.validate(access_token, self.secret_key)

    def _refresh_matches(self, token_hash: str, refresh_token: str) -> bool:
        try:
            self.validator.validate_refresh_token(token_hash, refresh_token)
        except InvalidRefreshTokenError:
            return False
        return True

    def _store_refresh_token(self, session: Session, user_id: int, token_hash: str) -> None:
        """Persist a refresh token hash, pruning the user's dead and surplus rows.

        Revoked and expired rows are deleted; of the live ones only the
        newest MAX_ACTIVE_REFRESH_TOKENS - 1 are kept, so a refresh never
        compares against more than MAX_ACTIVE_REFRESH_TOKENS hashes.
        """
        now = utcnow()
        session.execute(
            delete(RefreshTokenRecord).where(
                RefreshTokenRecord.user_id == user_id,
                or_(
                    RefreshTokenRecord.revoked_at.is_not(None),
                    RefreshTokenRecord.expires_at <= now,
                ),
            )
        )

        surplus = session.scalars(
            select(RefreshTokenRecord.id)
            .where(RefreshTokenRecord.user_id == user_id)
            .order_by(RefreshTokenRecord.id.desc())
            .offset(MAX_ACTIVE_REFRESH_TOKENS - 1)
        ).all()
        if surplus:
            session.execute(delete(RefreshTokenRecord).where(RefreshTokenRecord.id.in_(surplus)))
            self.logger.info("refresh_tokens_pruned", user_id=user_id, dropped=len(surplus))

        session.add(
            RefreshTokenRecord(
                user_id=user_id,
                token_hash=token_hash,
                expires_at=now + self.refresh_token_ttl,
            )
        )
