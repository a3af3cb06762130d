"""Authentication: password hashing, access/refresh tokens, local accounts."""

from reward_service.auth.local import LocalAuthService, LoginResult
from reward_service.auth.middleware import get_current_user_id, require_auth
from reward_service.auth.passwords import MIN_PASSWORD_LENGTH, PasswordVerifier
from reward_service.auth.tokens import IssuedTokens, TokenIssuer, TokenValidator

__all__ = [
    "IssuedTokens",
    "LocalAuthService",
    "LoginResult",
    "MIN_PASSWORD_LENGTH",
    "PasswordVerifier",
    "TokenIssuer",
    "TokenValidator",
    "get_current_user_id",
    "require_auth",
]
