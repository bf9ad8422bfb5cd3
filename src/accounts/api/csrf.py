"""CSRF protection using the double-submit cookie pattern.

``GET /api/csrf-token`` sets a random secret in the ``_csrf`` cookie and
returns the same value in the body. State-changing requests must echo it
back in the ``X-CSRF-Token`` header.
"""

import secrets

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from accounts.logging_config import get_logger

logger = get_logger(__name__)

CSRF_COOKIE_NAME = "_csrf"
CSRF_HEADER_NAME = "X-CSRF-Token"
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})

router = APIRouter(tags=["security"])


class CSRFMiddleware(BaseHTTPMiddleware):
    """Reject unsafe requests whose CSRF header does not match the cookie."""

    def __init__(self, app, enabled: bool = True):
        super().__init__(app)
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next):
        if self.enabled and request.method not in SAFE_METHODS:
            cookie_token = request.cookies.get(CSRF_COOKIE_NAME)
            header_token = request.headers.get(CSRF_HEADER_NAME)

            if not cookie_token or not header_token or not secrets.compare_digest(
                cookie_token.encode("utf-8"), header_token.encode("utf-8")
            ):
                logger.warning("csrf_rejected", path=request.url.path, method=request.method)
                return JSONResponse(status_code=403, content={"message": "Invalid CSRF token"})

        return await call_next(request)


@router.get("/csrf-token")
async def get_csrf_token(request: Request, response: Response):
    """Issue a CSRF token for subsequent state-changing requests."""
    token = secrets.token_urlsafe(32)
    response.set_cookie(
        CSRF_COOKIE_NAME,
        token,
        httponly=True,
        samesite="strict",
        secure=request.app.state.settings.is_production,
    )
    return {"csrfToken": token}
