"""Session token issuing and verification (JWT)."""

from datetime import datetime, timedelta, timezone
from typing import Callable

from jose import JWTError, jwt

from accounts.errors import AuthError, ConfigurationError
from accounts.logging_config import get_logger
from accounts.settings import Settings
from accounts.storage.models import utcnow

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "


class TokenService:
    """Issues and verifies signed, time-bound access tokens.

    The only identity claim is ``sub`` (the user id). There are no roles
    or scopes: a valid, unexpired token for some user is all there is.
    """

    def __init__(self, settings: Settings, clock: Callable[[], datetime] = utcnow):
        self.settings = settings
        self.clock = clock

    def signing_secret(self) -> str:
        """Return the signing secret, failing loudly if it is not configured."""
        secret = self.settings.jwt_secret
        if not secret:
            logger.error("jwt_secret_missing")
            raise ConfigurationError("JWT_SECRET is not configured")
        return secret

    @property
    def expires_in(self) -> int:
        """Token lifetime in seconds."""
        return self.settings.jwt_expire_minutes * 60

    def create_access_token(self, user_id: int) -> str:
        """Create JWT access token.

        Args:
            user_id: ID of the authenticated user

        Returns:
            JWT token string

        Raises:
            ConfigurationError: If no signing secret is configured
        """
        secret = self.signing_secret()
        issued_at = self.clock()
        payload = {
            "sub": str(user_id),
            "iat": issued_at,
            "exp": issued_at + timedelta(seconds=self.expires_in),
        }
        return jwt.encode(payload, secret, algorithm=self.settings.jwt_algorithm)

    def _is_expired(self, exp) -> bool:
        """True when ``exp`` is absent, malformed or earlier than the clock."""
        try:
            expires_at = datetime.fromtimestamp(int(exp), tz=timezone.utc).replace(tzinfo=None)
        except (TypeError, ValueError, OverflowError, OSError):
            return True
        return expires_at < self.clock().replace(microsecond=0)

    def decode(self, token: str) -> int:
        """Verify a raw token and return the user id it carries.

        Raises:
            AuthError: On bad signature, expiry, malformed token or missing claim
            ConfigurationError: If no signing secret is configured
        """
        secret = self.signing_secret()
        try:
            # Expiry is checked against the service clock below, not the wall clock
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.settings.jwt_algorithm],
                options={"verify_exp": False},
            )
        except JWTError as e:
            logger.info("token_verification_failed", error=str(e))
            raise AuthError("Invalid token") from e

        if not isinstance(payload, dict) or self._is_expired(payload.get("exp")):
            logger.info("token_verification_failed", error="expired or missing exp")
            raise AuthError("Invalid token")

        user_id = payload.get("sub")
        try:
            return int(user_id)
        except (TypeError, ValueError):
            logger.info("token_missing_user_claim")
            raise AuthError("Invalid token format") from None

    def verify(self, authorization: str | None) -> int:
        """Verify an ``Authorization`` header value.

        Args:
            authorization: Header value, expected as ``Bearer <token>``

        Returns:
            Authenticated user id
        """
        if not authorization or not authorization.startswith(BEARER_PREFIX):
            raise AuthError("Authentication required")

        token = authorization[len(BEARER_PREFIX):].strip()
        if not token:
            raise AuthError("Authentication required")

        return self.decode(token)
