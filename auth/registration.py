"""
auth/registration.py -- Explicit email/password account creation.

An existing email is reported as EmailAlreadyRegistered whether it is seen by
the up-front lookup or surfaces as DuplicateEmailError from the store's UNIQUE
constraint (two registrations for the same email interleaving).
"""

from __future__ import annotations

import logging

from auth.errors import DuplicateEmailError, EmailAlreadyRegistered, ValidationError
from auth.models import User
from auth.store import UserStore
from auth.tokens import MAX_PASSWORD_BYTES, hash_password

logger = logging.getLogger("sessionguard.auth.registration")

MIN_PASSWORD_LENGTH = 8


def register_user(
    store: UserStore,
    name: str | None,
    email: str | None,
    password: str | None,
    min_password_length: int = MIN_PASSWORD_LENGTH,
) -> User:
    """Create a password account and return the stored record.

    Raises:
        ValidationError:        a field is missing, or the password is too short or too long.
        EmailAlreadyRegistered: the email already belongs to an identity.
    """
    if not name or not email or not password:
        raise ValidationError("All fields are required.")
    if len(password) < min_password_length:
        raise ValidationError(f"Password must be at least {min_password_length} characters.")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")

    if store.find_by_email(email) is not None:
        raise EmailAlreadyRegistered()

    try:
        user = store.create(User(email=email, name=name, password_hash=hash_password(password)))
    except DuplicateEmailError as exc:
        raise EmailAlreadyRegistered() from exc
    logger.info("Registered %s", email)
    return user
