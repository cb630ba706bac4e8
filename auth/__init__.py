"""Session validation for the HTTP layer."""

from auth.exceptions import (
    AuthError,
    InvalidTokenError,
    SessionExpiredError,
    SessionRevokedError,
)
from auth.types import Session, SessionProvider
from auth.security_middleware import AuthMiddleware
