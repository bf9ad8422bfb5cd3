"""Rate limiting configuration for the accounts API."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from accounts.settings import Settings

DEFAULT_AUTH_RATE_LIMIT = "5 per 15 minutes"

# Single shared limiter instance; create_app() switches it on or off
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
)

_auth_rate_limit = DEFAULT_AUTH_RATE_LIMIT


def auth_rate_limit() -> str:
    """Limit applied to login and registration, read per request."""
    return _auth_rate_limit


def configure_limiter(settings: Settings) -> Limiter:
    """Apply settings to the shared limiter."""
    global _auth_rate_limit
    _auth_rate_limit = settings.auth_rate_limit
    limiter.enabled = settings.rate_limit_enabled
    return limiter
