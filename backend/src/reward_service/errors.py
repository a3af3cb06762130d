"""Domain errors for the reward service.

Every error raised by the auth, ledger and referral services derives from
RewardServiceError. The HTTP layer maps each family to a status code:

- ValidationError      -> 400, message returned as-is
- NotFoundError        -> 404, generic "not found"
- AuthError            -> 401, generic message
- InvariantViolation   -> 409
- TransientError       -> 503, safe to retry
"""


class RewardServiceError(Exception):
    """Base class for all reward service errors."""

    message = "reward service error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


# ==================== VALIDATION ====================


class ValidationError(RewardServiceError):
    message = "invalid input"


class PasswordTooShortError(ValidationError):
    """Raised before hashing when the plaintext is below the minimum length."""

    def __init__(self, min_length: int):
        self.min_length = min_length
        super().__init__(f"password must be at least {min_length} characters long")


class EmailAlreadyRegisteredError(ValidationError):
    message = "email already registered"


class ReferralCodeTakenError(ValidationError):
    message = "referral code already taken"


# ==================== NOT FOUND ====================


class NotFoundError(RewardServiceError):
    message = "not found"


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: int | None = None):
        self.user_id = user_id
        super().__init__("user does not exist")


class ReferrerNotFoundError(NotFoundError):
    message = "referrer does not exist"


class UnknownTaskError(NotFoundError):
    def __init__(self, task_name: str):
        self.task_name = task_name
        super().__init__(f"unknown task: {task_name}")


# ==================== AUTH ====================


class AuthError(RewardServiceError):
    message = "authentication failed"


class InvalidCredentialsError(AuthError):
    message = "invalid email or password"


class TokenValidationError(AuthError):
    """Access token could not be validated.

    The message is fixed: the token is attacker-controlled input and
    library diagnostics about it are never surfaced.
    """

    message = "token validation failed"


class TokenExpiredError(TokenValidationError):
    message = "token has expired"


class InvalidRefreshTokenError(AuthError):
    message = "invalid refresh token"


class TokenIssueError(AuthError):
    message = "failed to issue token"


# ==================== TRANSIENT ====================


class TransientError(RewardServiceError):
    message = "temporary failure, retry later"


class StorageTimeoutError(TransientError):
    message = "storage operation timed out"


class RandomSourceError(TransientError):
    message = "secure random source unavailable"


# ==================== INVARIANTS ====================


class InvariantViolation(RewardServiceError):
    message = "operation not allowed"


class SelfRedemptionError(InvariantViolation):
    message = "user cannot redeem their own referral code"


class AlreadyRedeemedError(InvariantViolation):
    message = "referral code already redeemed by this user"


# ==================== HASHING ====================


class PasswordHashError(RewardServiceError):
    """Stored hash is corrupt or uses an unsupported scheme.

    Distinct from a plain mismatch, which is reported as False.
    """

    message = "failed to compare password hash"
