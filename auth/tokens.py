"""
auth/tokens.py -- Password hashing and session-token transport.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper) with a fixed cost
       factor of 10. The salt is random and embedded in the hash string.
       bcrypt.checkpw compares in constant time. verify_password() never
       raises on a malformed hash -- it returns False.

       DUMMY_HASH enables timing equalization in the authenticator so response
       time does not reveal whether an email exists [C1].

  Session tokens: python-jose with HS256. The token carries the claims
       payload built by auth/session.py plus "sub" and "exp". Verification
       returns None on any failure -- the request layer turns that into 401.

  SECRET_KEY: sourced from core.config.get_settings(), which refuses to start
       in production without one [M7].

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings

logger = logging.getLogger("sessionguard.auth.tokens")

_ALGORITHM = "HS256"
BCRYPT_ROUNDS = 10
# bcrypt only reads this many bytes of input; bcrypt>=5 raises past it.
MAX_PASSWORD_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    The password must fit in MAX_PASSWORD_BYTES once UTF-8 encoded;
    register_user() rejects longer ones before they get here.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    if not isinstance(plain, str) or len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones [C1].
DUMMY_HASH: str = hash_password("sessionguard_timing_dummy")


# ---------------------------------------------------------------------------
# Session token encode / decode
# ---------------------------------------------------------------------------

_CLAIM_KEYS = ("id", "email", "name", "image")


def create_session_token(claims: dict, expire_seconds: int = 0) -> str:
    """Sign the claims payload into a JWT.

    Args:
        claims:         Output of auth.session.issue_claims().
        expire_seconds: Session duration. If 0 (default), uses
                        Settings.token_expire_seconds.
    """
    settings = get_settings()
    duration = expire_seconds if expire_seconds > 0 else settings.token_expire_seconds
    payload = {key: claims.get(key) for key in _CLAIM_KEYS}
    payload["sub"] = str(claims["id"])
    payload["exp"] = datetime.now(timezone.utc) + timedelta(seconds=duration)
    return jwt.encode(payload, settings.secret_key, algorithm=_ALGORITHM)


def decode_session_token(token: str) -> dict | None:
    """Verify a JWT and return its claims payload, or None on any failure.

    Only the claim keys are returned; "sub" and "exp" are transport details.
    """
    try:
        payload = jwt.decode(token, get_settings().secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if not payload.get("id") or not payload.get("email"):
        return None
    return {key: payload.get(key) for key in _CLAIM_KEYS}


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, expire_seconds: int = 0) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST (CSRF mitigation).
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: matches the JWT expiry so both expire together.
    """
    settings = get_settings()
    duration = expire_seconds if expire_seconds > 0 else settings.token_expire_seconds
    response.set_cookie(
        "access_token",
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=duration,
    )
