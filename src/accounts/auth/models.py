"""Request and result models for authentication operations."""

from pydantic import BaseModel


class RegisterInput(BaseModel):
    """User registration request.

    Fields are optional at the schema level so that missing values reach
    the service and get the service's own error message.
    """
    username: str | None = None
    email: str | None = None
    password: str | None = None
    referral_code: str | None = None


class LoginInput(BaseModel):
    """User login request."""
    email: str | None = None
    password: str | None = None


class ResetRequestInput(BaseModel):
    """Password reset request."""
    email: str | None = None


class MessageResult(BaseModel):
    message: str


class LoginResult(BaseModel):
    """Successful login."""
    message: str = "Login successful"
    token: str
    expires_in: int  # seconds
