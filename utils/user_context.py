"""Propagate the acting shop account through the call stack using contextvars.

The auth middleware sets the account once per request; stores read it for
row-level isolation and services stamp it onto new jobs and vendors.
"""

from contextvars import ContextVar
from uuid import UUID
from contextlib import contextmanager

_current_user_id: ContextVar[UUID | None] = ContextVar("current_user_id", default=None)


def get_current_user_id() -> UUID:
    """
    Get current user ID from context.

    Raises RuntimeError if no user context is set. Job operations are always
    performed on behalf of a shop account, so a missing context is a bug.
    """
    user_id = _current_user_id.get()
    if user_id is None:
        raise RuntimeError(
            "No user context set. Job operations must run inside an "
            "authenticated request or an explicit user_context() block."
        )
    return user_id


def get_current_user_id_or_none() -> UUID | None:
    """Current user ID, or None outside any user context."""
    return _current_user_id.get()


def set_current_user_id(user_id: UUID) -> None:
    """Set current user ID in context. Called by the auth middleware."""
    _current_user_id.set(user_id)


def clear_current_user_id() -> None:
    """
    Clear user context.

    Must be called in a finally block to prevent context leakage between
    requests.
    """
    _current_user_id.set(None)


@contextmanager
def user_context(user_id: UUID):
    """
    Temporarily act as the given shop account.

    Example:
        with user_context(shop_id):
            job = job_service.create(JobCreate(...))
    """
    previous = _current_user_id.get()
    set_current_user_id(user_id)
    try:
        yield
    finally:
        if previous is None:
            clear_current_user_id()
        else:
            set_current_user_id(previous)
