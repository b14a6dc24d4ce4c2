"""
auth/dependencies.py -- FastAPI Depends() helpers for session authentication.

Two token sources are checked in priority order:
  1. JWT cookie ("access_token") -- set by the login and OAuth callback flows.
  2. Authorization: Bearer <token> header -- API clients.

The session view is rebuilt from the token claims alone; the store is not
consulted, so claims stay as they were at sign-in until the user signs in again.

try_get_session() is the soft variant (returns None on failure).
get_current_session() wraps it and raises HTTP 401 if unauthenticated.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.session import to_session_view
from auth.tokens import decode_session_token


def try_get_session(request: Request) -> dict | None:
    """Return the session view for the request, or None. Never raises."""
    token: str | None = request.cookies.get("access_token")

    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]

    if not token:
        return None
    claims = decode_session_token(token)
    if claims is None:
        return None
    return to_session_view(claims)


def get_current_session(request: Request) -> dict:
    """Require a session. Raises HTTP 401 if the request is not authenticated."""
    session = try_get_session(request)
    if session is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return session
