"""Main FastAPI application for the reward service API."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from reward_service import errors
from reward_service.api.rate_limit import limiter
from reward_service.api.v1.auth import router as auth_router
from reward_service.api.v1.referral import router as referral_router
from reward_service.api.v1.tasks import router as tasks_router
from reward_service.api.v1.users import router as users_router
from reward_service.auth.local import LocalAuthService
from reward_service.auth.passwords import PasswordVerifier
from reward_service.ledger.service import RewardLedger
from reward_service.ledger.tasks import TaskService
from reward_service.logging_config import get_logger
from reward_service.referral.service import ReferralRedeemer
from reward_service.settings import settings
from reward_service.storage.db import Database, db

logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        # Prevent clickjacking - don't allow embedding in iframes
        response.headers["X-Frame-Options"] = "DENY"

        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        # Referrer Policy - don't leak URLs to other sites
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # Tokens and balances must not be cached by intermediaries
        response.headers["Cache-Control"] = "no-store"

        return response


def _register_error_handlers(app: FastAPI) -> None:
    """Translate domain errors into HTTP responses.

    Not-found and auth failures get fixed bodies so responses do not
    reveal which account or which check failed.
    """

    @app.exception_handler(errors.ValidationError)
    async def validation_error_handler(request: Request, exc: errors.ValidationError):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

    @app.exception_handler(errors.NotFoundError)
    async def not_found_handler(request: Request, exc: errors.NotFoundError):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "not found"})

    @app.exception_handler(errors.AuthError)
    async def auth_error_handler(request: Request, exc: errors.AuthError):
        if isinstance(exc, errors.TokenIssueError):
            logger.error("token_issue_failed", error=str(exc))
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"detail": "could not issue tokens"},
            )
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": str(exc)},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(errors.InvariantViolation)
    async def invariant_handler(request: Request, exc: errors.InvariantViolation):
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})

    @app.exception_handler(errors.TransientError)
    async def transient_handler(request: Request, exc: errors.TransientError):
        logger.warning("transient_failure", error_type=type(exc).__name__, path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": errors.TransientError.message},
            headers={"Retry-After": "1"},
        )

    @app.exception_handler(errors.PasswordHashError)
    async def password_hash_handler(request: Request, exc: errors.PasswordHashError):
        logger.error("stored_password_hash_unreadable", path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "internal error"},
        )


def create_app(
    database: Database | None = None,
    auth_service: LocalAuthService | None = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        database: Database to bind services to (defaults to the global one)
        auth_service: Prebuilt auth service (tests inject a low-cost hasher)

    Returns:
        Configured FastAPI app
    """
    database = database or db
    is_production = settings.env == "production"

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        logger.info("app_starting", env=settings.env)
        database.create_tables()
        yield
        logger.info("app_shutting_down")

    app = FastAPI(
        title="Reward Service API",
        description="Points, tasks and referral rewards",
        version="1.0.0",
        docs_url=None if is_production else "/api/docs",
        redoc_url=None if is_production else "/api/redoc",
        openapi_url=None if is_production else "/api/openapi.json",
        lifespan=lifespan,
    )

    # Services
    ledger = RewardLedger(database)
    app.state.auth_service = auth_service or LocalAuthService(database, PasswordVerifier())
    app.state.ledger = ledger
    app.state.task_service = TaskService(ledger)
    app.state.redeemer = ReferralRedeemer(ledger, database)

    # Security Headers middleware (must be added before CORS)
    app.add_middleware(SecurityHeadersMiddleware)

    # CORS middleware - SECURITY: Never allow wildcard in production
    allowed_origins = [
        origin.strip()
        for origin in settings.allowed_origins.split(",")
        if origin.strip()
    ]

    if is_production and "*" in allowed_origins:
        logger.error("cors_wildcard_blocked", message="Wildcard CORS not allowed in production")
        allowed_origins = []

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Accept", "Authorization", "Content-Type", "X-CSRF-Token"],
        max_age=300,
    )

    # Rate limiting (shared instance from rate_limit module)
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content={"detail": "Too many requests. Please try again later."},
        )

    _register_error_handlers(app)

    # Include v1 API routers
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(users_router, prefix="/api/v1")
    app.include_router(tasks_router, prefix="/api/v1")
    app.include_router(referral_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": "1.0.0",
            "env": settings.env,
        }

    return app
