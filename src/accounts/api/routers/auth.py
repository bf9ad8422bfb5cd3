"""Authentication endpoints."""

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel

from accounts.api.rate_limit import auth_rate_limit, limiter
from accounts.auth.models import LoginInput, MessageResult, RegisterInput, ResetRequestInput
from accounts.auth.service import AuthService
from accounts.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["auth"])

SESSION_COOKIE_NAME = "token"


class LoginResponse(BaseModel):
    """Login response body."""
    message: str
    token: str


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


@router.post("/register", response_model=MessageResult, status_code=status.HTTP_201_CREATED)
@limiter.limit(auth_rate_limit)
async def register(
    request: Request,
    body: RegisterInput,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Register a new user account.

    If referral_code is provided it must belong to an existing user, who
    is then credited with the referral.
    """
    return auth_service.register(body)


@router.post("/login", response_model=LoginResponse)
@limiter.limit(auth_rate_limit)
async def login(
    request: Request,
    response: Response,
    body: LoginInput,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Login with email and password.

    The token is returned in the body and also set as an http-only cookie.
    """
    result = auth_service.login(body)

    response.set_cookie(
        SESSION_COOKIE_NAME,
        result.token,
        max_age=result.expires_in,
        httponly=True,
        secure=request.app.state.settings.is_production,
        samesite="strict",
    )
    return LoginResponse(message=result.message, token=result.token)


@router.post("/forgot-password", response_model=MessageResult)
async def forgot_password(
    body: ResetRequestInput,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Request password reset email.

    Always returns the same message to prevent email enumeration.
    """
    return await auth_service.request_password_reset(body)
