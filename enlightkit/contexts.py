"""Request-scoped user and impersonater identifiers."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_user_id: ContextVar[Optional[str]] = ContextVar("user_id", default=None)
_impersonater_id: ContextVar[Optional[str]] = ContextVar("impersonater_id", default=None)


def current_user_id() -> Optional[str]:
    """Return the user ID of the current context, or None if none is set."""
    return _user_id.get()


@contextmanager
def user_id_scope(user_id: str) -> Iterator[str]:
    """Make ``user_id`` the current user ID for the duration of the block."""
    token = _user_id.set(user_id)
    try:
        yield user_id
    finally:
        _user_id.reset(token)


def current_impersonater_id() -> Optional[str]:
    """Return the impersonating user's ID of the current context, or None."""
    return _impersonater_id.get()


@contextmanager
def impersonater_scope(impersonater_id: str) -> Iterator[str]:
    """Make ``impersonater_id`` the current impersonater for the duration of the block."""
    token = _impersonater_id.set(impersonater_id)
    try:
        yield impersonater_id
    finally:
        _impersonater_id.reset(token)