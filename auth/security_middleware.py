"""Security middleware for FastAPI - session validation and user context."""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from auth.exceptions import InvalidTokenError, SessionExpiredError, SessionRevokedError
from auth.types import SessionProvider
from api.base import error_response, request_id_of, ErrorCodes
from utils.user_context import set_current_user_id, clear_current_user_id

logger = logging.getLogger(__name__)


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that validates the session and sets the shop context.

    For protected routes:
    1. Extracts session token from 'session_token' cookie
    2. Validates it via the SessionProvider
    3. Sets user_id in request.state and user context (for row isolation)
    4. Clears context after request completes

    Public paths bypass authentication entirely.
    """

    PUBLIC_PATHS = [
        "/health",
        "/docs",
        "/openapi.json",
    ]

    def __init__(self, app, session_provider: SessionProvider):
        super().__init__(app)
        self._session_provider = session_provider

    def _is_public_path(self, path: str) -> bool:
        return any(path == p or path.startswith(f"{p}/") for p in self.PUBLIC_PATHS)

    def _reject(self, request: Request, code: str, message: str) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content=error_response(code, message, request_id_of(request)).model_dump(mode="json"),
        )

    async def dispatch(self, request: Request, call_next):
        if self._is_public_path(request.url.path):
            return await call_next(request)

        session_token = request.cookies.get("session_token")
        if not session_token:
            return self._reject(request, ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

        try:
            session = self._session_provider.validate_session(session_token)
        except SessionExpiredError:
            return self._reject(request, ErrorCodes.SESSION_EXPIRED, "Session has expired")
        except (InvalidTokenError, SessionRevokedError) as e:
            logger.warning(f"Rejected session on {request.url.path}: {e}")
            return self._reject(request, ErrorCodes.INVALID_TOKEN, "Invalid session")

        set_current_user_id(session.user_id)
        request.state.user_id = session.user_id
        request.state.session = session

        try:
            return await call_next(request)
        finally:
            clear_current_user_id()
