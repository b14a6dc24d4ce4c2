"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; the store, tracker and authenticator do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Union


@dataclass
class User:
    """An identity record keyed by email.

    password_hash is None for accounts created through a federated provider --
    credential logins against those accounts fail exactly like a wrong password.

    failed_attempts / locked_until belong to the lockout tracker and are always
    written together. locked_until is None when the account is not locked.
    """

    email: str
    id: str | None = None
    name: str | None = None
    image: str | None = None
    password_hash: str | None = None
    failed_attempts: int = 0
    locked_until: datetime | None = None
    created_at: str | None = None

    def public_fields(self) -> dict:
        """The fields that may leave the auth layer (no hash, no counters)."""
        return {"id": self.id, "email": self.email, "name": self.name, "image": self.image}


@dataclass
class FederatedProfile:
    """Normalized profile handed over by an external identity provider.

    handle is the provider-specific login (e.g. the GitHub username); it is
    the last resort for both the display name and the no-reply email.
    """

    email: str | None = None
    name: str | None = None
    image: str | None = None
    handle: str | None = None


# ---------------------------------------------------------------------------
# Sign-in attempts -- tagged variant consumed by Authenticator.sign_in()
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CredentialsAttempt:
    email: str | None
    password: str | None


@dataclass(frozen=True)
class FederatedAttempt:
    provider: str  # "github", "google"
    profile: FederatedProfile


SignInAttempt = Union[CredentialsAttempt, FederatedAttempt]
