"""Main FastAPI application for the accounts API."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from accounts import __version__
from accounts.api.csrf import CSRFMiddleware
from accounts.api.csrf import router as csrf_router
from accounts.api.rate_limit import configure_limiter
from accounts.api.routers.auth import router as auth_router
from accounts.api.routers.referral import router as referral_router
from accounts.auth.service import AuthService
from accounts.auth.tokens import TokenService
from accounts.email.service import EmailService, Mailer
from accounts.errors import AccountError
from accounts.logging_config import configure_logging, get_logger
from accounts.referral.service import ReferralQueryService
from accounts.settings import Settings
from accounts.storage.db import Database
from accounts.storage.repo import SqlReferralStore, SqlUserStore

logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses.

    These headers protect against common web vulnerabilities:
    - XSS (Cross-Site Scripting)
    - Clickjacking
    - MIME sniffing
    - Information disclosure
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        # Prevent clickjacking - don't allow embedding in iframes
        response.headers["X-Frame-Options"] = "DENY"

        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        # XSS Protection (legacy but still useful)
        response.headers["X-XSS-Protection"] = "1; mode=block"

        # Referrer Policy - don't leak reset tokens in URLs to other sites
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # Content Security Policy - the API serves JSON only
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        # Permissions Policy - disable unnecessary browser features
        response.headers["Permissions-Policy"] = (
            "accelerometer=(), "
            "camera=(), "
            "geolocation=(), "
            "microphone=(), "
            "payment=(), "
            "usb=()"
        )

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    settings: Settings = app.state.settings
    logger.info("app_starting", env=settings.env)

    db: Database = app.state.db
    db.wait_until_ready()
    db.create_tables()

    if not settings.jwt_secret:
        logger.warning("jwt_secret_missing", detail="login and protected routes will fail")

    yield

    # Shutdown
    logger.info("app_shutting_down")
    db.dispose()


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AccountError)
    async def account_error_handler(request: Request, exc: AccountError):
        if exc.status_code >= 500:
            logger.error(
                "request_failed",
                path=request.url.path,
                error_type=type(exc).__name__,
                error=exc.message,
            )
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.client_message},
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.info("invalid_request_body", path=request.url.path, errors=len(exc.errors()))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": "Invalid request body"},
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning("rate_limited", path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"message": "Too many requests, please try again later."},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(
            "unhandled_error",
            path=request.url.path,
            error_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Server error"},
        )


def create_app(
    settings: Settings | None = None,
    db: Database | None = None,
    mailer: Mailer | None = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        settings: Configuration (read from the environment if omitted)
        db: Database to use (built from settings if omitted)
        mailer: Email backend (SendGrid if omitted)

    Returns:
        Configured FastAPI app
    """
    settings = settings or Settings()
    configure_logging(settings)

    # Hide API docs in production
    is_production = settings.is_production

    app = FastAPI(
        title="Accounts API",
        description="User accounts with referral tracking",
        version=__version__,
        docs_url=None if is_production else "/api/docs",
        redoc_url=None if is_production else "/api/redoc",
        openapi_url=None if is_production else "/api/openapi.json",
        lifespan=lifespan,
    )

    # Wiring: everything below reads configuration from this one object
    db = db or Database(settings)
    users = SqlUserStore(db)
    referrals = SqlReferralStore(db)
    token_service = TokenService(settings)

    app.state.settings = settings
    app.state.db = db
    app.state.token_service = token_service
    app.state.auth_service = AuthService(
        users=users,
        referrals=referrals,
        settings=settings,
        mailer=mailer or EmailService(settings),
        tokens=token_service,
    )
    app.state.referral_service = ReferralQueryService(referrals)

    # CSRF runs innermost so CORS preflights never reach it
    app.add_middleware(CSRFMiddleware, enabled=settings.csrf_enabled)

    # Security Headers middleware (must be added before CORS)
    app.add_middleware(SecurityHeadersMiddleware)

    # CORS middleware - SECURITY: Never allow wildcard in production
    allowed_origins = settings.allowed_origins
    if is_production and "*" in allowed_origins:
        logger.error("cors_wildcard_blocked", message="Wildcard CORS not allowed in production")
        allowed_origins = []  # Block all if misconfigured

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "X-CSRF-Token"],
        max_age=3600,  # Cache preflight for 1 hour
    )

    # Rate limiting (shared instance from rate_limit module)
    app.state.limiter = configure_limiter(settings)

    _register_exception_handlers(app)

    app.include_router(csrf_router, prefix="/api")
    app.include_router(auth_router, prefix="/api")
    app.include_router(referral_router, prefix="/api")

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": __version__,
            "env": settings.env,
        }

    return app


def get_app() -> FastAPI:
    """Factory for ``uvicorn --factory``."""
    return create_app()
