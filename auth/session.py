"""
auth/session.py -- Session claim assembly.

issue_claims() snapshots an authenticated identity into the claims payload;
to_session_view() turns a payload back into the user-facing session object.
Claims are copied verbatim and stay stale until the user re-authenticates --
nothing here reloads the store. Signing and expiry live in auth/tokens.py.
"""

from __future__ import annotations

from auth.models import User


def issue_claims(identity: User | dict) -> dict:
    """Copy id, email, name and image from the identity. No other claims."""
    if isinstance(identity, User):
        identity = identity.public_fields()
    return {
        "id": identity["id"],
        "email": identity["email"],
        "name": identity.get("name"),
        "image": identity.get("image"),
    }


def to_session_view(claims: dict) -> dict:
    """Build the session user object; image is omitted when absent or empty."""
    view = {
        "id": claims["id"],
        "email": claims["email"],
        "name": claims.get("name"),
    }
    if claims.get("image"):
        view["image"] = claims["image"]
    return view
