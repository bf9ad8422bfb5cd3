"""Error taxonomy for the accounts service.

Services raise these; the API layer turns them into ``{"message": ...}``
responses with the matching status code.
"""

from fastapi import status


class AccountError(Exception):
    """Base class for all service errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message: str | None = None  # Overrides the message in responses

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def client_message(self) -> str:
        return self.public_message or self.message


class ValidationError(AccountError):
    """Missing or malformed input."""

    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(AccountError):
    """A unique field is already taken."""

    status_code = status.HTTP_409_CONFLICT


class AuthError(AccountError):
    """Bad credentials or bad token. Messages stay generic."""

    status_code = status.HTTP_401_UNAUTHORIZED


class InvalidCredentials(AuthError):
    """Login failed. Same error for unknown email and wrong password."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class ConfigurationError(AccountError):
    """Required server configuration is missing."""

    public_message = "Server error"


class StoreError(AccountError):
    """The underlying persistence layer failed."""

    public_message = "Server error"
