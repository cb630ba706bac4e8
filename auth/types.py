"""Session types consumed by the API layer.

Login, magic links and session storage live in the shop's identity service;
this package only validates the session cookie through a SessionProvider.
"""

from datetime import datetime
from typing import Protocol
from uuid import UUID

from pydantic import BaseModel, Field


class Session(BaseModel):
    """An active shop session."""

    token: str = Field(..., description="Session token (opaque string)")
    user_id: UUID = Field(..., description="Shop account the session acts for")
    created_at: datetime
    expires_at: datetime
    last_activity_at: datetime


class SessionProvider(Protocol):
    """Anything that can turn a session token into a Session."""

    def validate_session(self, token: str) -> Session:
        """
        Raises:
            InvalidTokenError: Unknown token
            SessionExpiredError: Session past its expiry
            SessionRevokedError: Session was logged out
        """
        ...
