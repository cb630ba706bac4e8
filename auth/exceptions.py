"""Typed exceptions for session failures."""


class AuthError(Exception):
    """Base class for authentication errors."""


class InvalidTokenError(AuthError):
    """Session token is unknown or malformed."""


class SessionExpiredError(AuthError):
    """Session has expired and the shop account must log in again."""


class SessionRevokedError(AuthError):
    """Session was explicitly revoked (logout or security action)."""
