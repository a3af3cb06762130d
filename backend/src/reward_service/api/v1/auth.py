"""Authentication API v1 endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from reward_service.api.rate_limit import LOGIN_LIMIT, REFRESH_LIMIT, REGISTER_LIMIT, limiter
from reward_service.auth.local import LocalAuthService, LoginResult
from reward_service.auth.middleware import ACCESS_TOKEN_COOKIE, get_auth_service, require_auth
from reward_service.logging_config import get_logger
from reward_service.storage.models import UserAccount

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# ==================== MODELS ====================


class CamelModel(BaseModel):
    """Accepts and emits camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class RegisterRequest(CamelModel):
    """User registration request."""
    email: EmailStr
    # Length is enforced by the password verifier so the error is a 400
    password: str = Field(..., max_length=100)
    first_name: str | None = Field(default=None, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)
    referrer: str | None = Field(default=None, max_length=32)  # The user's own code


class LoginRequest(CamelModel):
    """User login request."""
    email: EmailStr
    password: str


class RefreshRequest(CamelModel):
    """Refresh token exchange request."""
    user_id: int
    refresh_token: str


class UserResponse(CamelModel):
    """Public view of an account."""
    id: int
    email: str
    first_name: str | None = None
    last_name: str | None = None
    is_active: bool
    score: int
    referral_code: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_account(cls, user: UserAccount) -> "UserResponse":
        return cls.model_validate(user)


class TokenResponse(CamelModel):
    """Issued token pair."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user_id: int


def set_access_token_cookie(response: Response, result: LoginResult) -> int:
    """Deliver the access token as an http-only, secure, same-site-strict cookie.

    Returns:
        Cookie lifetime in seconds
    """
    max_age = max(0, int((result.tokens.expires_at - datetime.now(result.tokens.expires_at.tzinfo)).total_seconds()))
    response.set_cookie(
        key=ACCESS_TOKEN_COOKIE,
        value=result.tokens.access_token,
        max_age=max_age,
        expires=result.tokens.expires_at,
        path="/",
        httponly=True,
        secure=True,
        samesite="strict",
    )
    return max_age


def _token_response(response: Response, result: LoginResult) -> TokenResponse:
    expires_in = set_access_token_cookie(response, result)
    return TokenResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        expires_in=expires_in,
        user_id=result.user.id,
    )


# ==================== ENDPOINTS ====================


@router.post(
    "/register",
    response_model=UserResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(REGISTER_LIMIT)
def register(
    request: Request,
    body: RegisterRequest,
    auth_service: LocalAuthService = Depends(get_auth_service),
):
    """Register a new user account."""
    user = auth_service.register(
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        referral_code=body.referrer,
    )
    return UserResponse.from_account(user)


@router.post("/login", response_model=TokenResponse, response_model_by_alias=True)
@limiter.limit(LOGIN_LIMIT)
def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    auth_service: LocalAuthService = Depends(get_auth_service),
):
    """Login with email and password.

    Returns the token pair and sets the ``accessToken`` cookie.
    """
    result = auth_service.login(body.email, body.password)
    return _token_response(response, result)


@router.post("/refresh", response_model=TokenResponse, response_model_by_alias=True)
@limiter.limit(REFRESH_LIMIT)
def refresh(
    request: Request,
    response: Response,
    body: RefreshRequest,
    auth_service: LocalAuthService = Depends(get_auth_service),
):
    """Exchange a refresh token for a new token pair."""
    result = auth_service.refresh(body.user_id, body.refresh_token)
    return _token_response(response, result)


@router.post("/logout")
def logout(
    response: Response,
    user_id: int = Depends(require_auth),
    auth_service: LocalAuthService = Depends(get_auth_service),
):
    """Revoke refresh tokens and clear the access token cookie."""
    revoked = auth_service.logout(user_id)
    response.delete_cookie(ACCESS_TOKEN_COOKIE, path="/", secure=True, httponly=True, samesite="strict")
    return {"message": "Logged out", "revokedTokens": revoked}
