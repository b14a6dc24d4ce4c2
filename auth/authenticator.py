"""
auth/authenticator.py -- The single sign-in entry point.

sign_in() dispatches on the attempt variant:
  CredentialsAttempt -> authenticate()   (email + password, lockout enforced)
  FederatedAttempt   -> IdentityResolver (no lockout on the federated path)

Both paths return the identity's public fields, ready for
auth.session.issue_claims(). Failures are raised as auth.errors types.

Credential path, in order, stopping at the first failure:
  1. Locked?                         -> AccountLocked (counters untouched, no bcrypt)
  2. Unknown email / no password set -> record_failure, InvalidCredentials
  3. Wrong password                  -> record_failure, InvalidCredentials
  4. Success                         -> record_success, public fields
"""

from __future__ import annotations

import logging

from auth.errors import AccountLocked, InvalidCredentials, ValidationError
from auth.federation import IdentityResolver
from auth.lockout import LockoutTracker
from auth.models import CredentialsAttempt, FederatedAttempt, SignInAttempt
from auth.store import UserStore
from auth.tokens import DUMMY_HASH, verify_password

logger = logging.getLogger("sessionguard.auth.authenticator")


class Authenticator:
    """Orchestrates lockout, credential verification and identity resolution.

    Usage:
        store = UserStore(db_url)
        authenticator = Authenticator(store)
        identity = authenticator.sign_in(CredentialsAttempt("a@x.com", "secret"))
    """

    def __init__(
        self,
        store: UserStore,
        tracker: LockoutTracker | None = None,
        resolver: IdentityResolver | None = None,
    ) -> None:
        self.store = store
        self.tracker = tracker or LockoutTracker(store)
        self.resolver = resolver or IdentityResolver(store)

    def sign_in(self, attempt: SignInAttempt) -> dict:
        if isinstance(attempt, CredentialsAttempt):
            return self.authenticate(attempt.email, attempt.password)
        if isinstance(attempt, FederatedAttempt):
            return self.resolver.resolve(attempt.provider, attempt.profile).public_fields()
        raise TypeError(f"Unsupported sign-in attempt: {type(attempt).__name__}")

    def authenticate(self, email: str | None, password: str | None) -> dict:
        """Verify email/password and return the identity's public fields.

        The same InvalidCredentials is raised for unknown users, password-less
        accounts and wrong passwords so callers cannot enumerate accounts.
        """
        if not email or not password:
            raise ValidationError()

        if self.tracker.is_locked(email):
            logger.info("Login refused for %s: account locked", email)
            raise AccountLocked(_locked_message(self.tracker))

        user = self.store.find_by_email(email)
        if user is None or user.password_hash is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            verify_password(password, DUMMY_HASH)
            self.tracker.record_failure(email)
            logger.info("Failed login for %s", email)
            raise InvalidCredentials()

        if not verify_password(password, user.password_hash):
            self.tracker.record_failure(email)
            logger.info("Failed login for %s", email)
            raise InvalidCredentials()

        self.tracker.record_success(email)
        return user.public_fields()


def _locked_message(tracker: LockoutTracker) -> str:
    minutes = int(tracker.window.total_seconds() // 60)
    return f"Your account is temporarily locked. Try again in {minutes} minutes."
