"""FastAPI dependency injection: session access."""

from __future__ import annotations

from fastapi import Request

from .data import SessionData
from .errors import SessionNotLoadedError
from .middleware import STATE_KEY


def get_session(request: Request) -> SessionData:
    """Get the session bound to this request by SessionMiddleware."""
    session = getattr(request.state, STATE_KEY, None)
    if not isinstance(session, SessionData):
        raise SessionNotLoadedError()
    return session
