"""Propagate the authenticated user's claims through the call stack."""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from auth.types import TokenClaims

_current_user: "ContextVar[TokenClaims | None]" = ContextVar("current_user", default=None)


def get_current_user() -> "TokenClaims":
    """
    Get the access-token claims of the current request.

    Raises RuntimeError if no user context is set. Calling user-scoped code
    outside of an authenticated request is a bug, not a 401.
    """
    claims = _current_user.get()
    if claims is None:
        raise RuntimeError(
            "No user context set. This usually means you're calling "
            "user-scoped code outside of an authenticated request."
        )
    return claims


def set_current_user(claims: "TokenClaims") -> None:
    """Set the claims for the rest of this context."""
    _current_user.set(claims)


def clear_current_user() -> None:
    """Must be called in a finally block to prevent context leakage."""
    _current_user.set(None)


@contextmanager
def user_context(claims: "TokenClaims"):
    """
    Temporarily set the current user.

    Example:
        with user_context(claims):
            habit = habit_service.create(data)
    """
    previous = _current_user.get()
    set_current_user(claims)
    try:
        yield
    finally:
        if previous is None:
            clear_current_user()
        else:
            set_current_user(previous)
