"""Authentication: registration, login, password reset and bearer tokens."""

from accounts.auth.models import LoginInput, LoginResult, MessageResult, RegisterInput, ResetRequestInput
from accounts.auth.service import AuthService
from accounts.auth.tokens import TokenService

__all__ = [
    "AuthService",
    "LoginInput",
    "LoginResult",
    "MessageResult",
    "RegisterInput",
    "ResetRequestInput",
    "TokenService",
]
