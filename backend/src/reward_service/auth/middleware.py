"""Authentication dependencies for FastAPI."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from reward_service.auth.local import LocalAuthService
from reward_service.errors import TokenExpiredError, TokenValidationError
from reward_service.logging_config import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_COOKIE = "accessToken"

# Security scheme
security = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> LocalAuthService:
    return request.app.state.auth_service


async def get_current_user_id(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    auth_service: LocalAuthService = Depends(get_auth_service),
) -> int | None:
    """Get the subject id of the presented access token.

    The token is read from the Authorization header first, then from the
    ``accessToken`` cookie.

    Returns:
        User id or None if no valid token was presented
    """
    token = credentials.credentials if credentials else request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token:
        return None

    try:
        user_id = auth_service.authenticate_token(token)
    except TokenExpiredError:
        logger.debug("access_token_expired")
        return None
    except TokenValidationError:
        logger.debug("access_token_rejected")
        return None

    # Store subject in request state for later use
    request.state.user_id = user_id
    return user_id


def require_auth(user_id: int | None = Depends(get_current_user_id)) -> int:
    """Require authentication - raises 401 if not authenticated.

    Returns:
        Authenticated user id

    Raises:
        HTTPException: 401 if not authenticated
    """
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id
