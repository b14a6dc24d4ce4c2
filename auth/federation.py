"""
auth/federation.py -- Map an external provider profile onto a local identity.

The resolver never checks or touches the lockout counter: federated sign-in
is governed by the provider, not by local password attempts.

Enrichment is one-way and non-destructive: provider data only fills name or
image when the local value is empty. A user who set their own name keeps it.
"""

from __future__ import annotations

import logging

from auth.errors import DuplicateEmailError, IdentityResolutionFailed
from auth.models import FederatedProfile, User
from auth.store import UserStore

logger = logging.getLogger("sessionguard.auth.federation")

# Providers that hand out a stable no-reply address for users who keep their
# email private. Keyed by provider name.
NOREPLY_DOMAINS = {
    "github": "github.com",
}

DEFAULT_DISPLAY_NAME = "User"


def derive_email(provider: str, profile: FederatedProfile) -> str | None:
    """Return the identity key for a federated profile, or None if there is none.

    Prefers the email the provider supplied; otherwise synthesizes
    <handle>@users.noreply.<domain> for providers that support it.
    """
    if profile.email:
        return profile.email
    domain = NOREPLY_DOMAINS.get(provider)
    if domain and profile.handle:
        return f"{profile.handle}@users.noreply.{domain}"
    return None


class IdentityResolver:
    def __init__(self, store: UserStore) -> None:
        self.store = store

    def resolve(self, provider: str, profile: FederatedProfile) -> User:
        """Find or create the local record for this profile and return it.

        Raises IdentityResolutionFailed when no email can be derived.
        Whether the record was created or found does not change the result.
        """
        email = derive_email(provider, profile)
        if not email:
            logger.info("Rejected %s sign-in: profile has no usable email", provider)
            raise IdentityResolutionFailed()

        existing = self.store.find_by_email(email)
        if existing is None:
            try:
                user = self.store.create(
                    User(
                        email=email,
                        name=profile.name or profile.handle or DEFAULT_DISPLAY_NAME,
                        image=profile.image or None,
                    )
                )
            except DuplicateEmailError:
                # A concurrent sign-in created it first; fall through to enrichment.
                existing = self.store.find_by_email(email)
                if existing is None:
                    raise
            else:
                logger.info("Created %s identity for %s", provider, email)
                return user

        updates = {}
        if profile.name and not existing.name:
            updates["name"] = profile.name
        if profile.image and not existing.image:
            updates["image"] = profile.image
        if not updates:
            return existing
        logger.info("Enriched %s from %s profile: %s", email, provider, ", ".join(sorted(updates)))
        return self.store.update(email, **updates) or existing
