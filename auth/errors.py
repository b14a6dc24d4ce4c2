"""
auth/errors.py -- Typed authentication failures.

Every failure carries a stable machine-readable code and the short message
shown to the end user. api/main.py maps each class to an HTTP status.

InvalidCredentials is deliberately used for "no such user", "no password set"
and "wrong password" alike, so callers cannot enumerate accounts.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all authentication outcomes that are not a success."""

    code = "auth_error"
    message = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(AuthError):
    code = "validation_error"
    message = "Email and password are required."


class AccountLocked(AuthError):
    code = "account_locked"
    message = "Your account is temporarily locked. Try again in 15 minutes."


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    message = "Invalid email or password."


class IdentityResolutionFailed(AuthError):
    code = "identity_resolution_failed"
    message = "Could not determine an email address for this account."


class EmailAlreadyRegistered(AuthError):
    code = "email_registered"
    message = "This email is already registered."


class StoreUnavailable(AuthError):
    """The identity store could not be reached. Transient; never retried here."""

    code = "store_unavailable"
    message = "The service is temporarily unavailable. Please try again."


class DuplicateEmailError(Exception):
    """Raised by UserStore.create() when the email is already taken."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"A user with email {email!r} already exists")
