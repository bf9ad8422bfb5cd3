"""Authentication dependency for FastAPI routes."""

from fastapi import Header, Request

from accounts.auth.tokens import TokenService
from accounts.logging_config import get_logger

logger = get_logger(__name__)


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


async def require_user_id(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> int:
    """Require a valid bearer token.

    Stores the authenticated user id in ``request.state.user_id`` for
    downstream handlers.

    Raises:
        AuthError: 401 if the header is missing or the token is not valid
    """
    user_id = get_token_service(request).verify(authorization)
    request.state.user_id = user_id
    logger.debug("request_authenticated", user_id=user_id)
    return user_id
