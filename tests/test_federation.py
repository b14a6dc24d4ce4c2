"""Unit tests for auth/federation.py -- federated identity resolution.

Covers:
- derive_email(): provider email first, GitHub no-reply fallback, None otherwise
- First sign-in creates exactly one password-less record
- Second sign-in creates no duplicate and only fills empty name/image
- Enrichment never overwrites non-empty values
- Display-name fallback chain: profile name, handle, placeholder
"""

from unittest.mock import MagicMock

import pytest

from auth.errors import DuplicateEmailError, IdentityResolutionFailed
from auth.federation import DEFAULT_DISPLAY_NAME, IdentityResolver, derive_email
from auth.models import FederatedProfile, User
from auth.store import UserStore


class TestDeriveEmail:
    def test_prefers_provider_email(self):
        profile = FederatedProfile(email="octo@x.com", handle="octocat")
        assert derive_email("github", profile) == "octo@x.com"

    def test_github_noreply_fallback(self):
        profile = FederatedProfile(handle="octocat")
        assert derive_email("github", profile) == "octocat@users.noreply.github.com"

    def test_no_fallback_for_google(self):
        assert derive_email("google", FederatedProfile(handle="1234")) is None

    def test_no_handle_no_email(self):
        assert derive_email("github", FederatedProfile(name="Octo")) is None


class TestResolveNewIdentity:
    def test_creates_single_passwordless_record(self, store):
        resolver = IdentityResolver(store)
        user = resolver.resolve("google", FederatedProfile(email="new@x.com", name="New", image="https://img/n.png"))
        assert user.id
        stored = store.find_by_email("new@x.com")
        assert stored.password_hash is None
        assert stored.failed_attempts == 0
        assert stored.locked_until is None
        assert (stored.name, stored.image) == ("New", "https://img/n.png")

    def test_name_falls_back_to_handle(self, store):
        user = IdentityResolver(store).resolve("github", FederatedProfile(handle="octocat"))
        assert user.email == "octocat@users.noreply.github.com"
        assert user.name == "octocat"

    def test_name_falls_back_to_placeholder(self, store):
        user = IdentityResolver(store).resolve("google", FederatedProfile(email="anon@x.com"))
        assert user.name == DEFAULT_DISPLAY_NAME

    def test_empty_image_stored_as_none(self, store):
        user = IdentityResolver(store).resolve("google", FederatedProfile(email="anon@x.com", image=""))
        assert user.image is None

    def test_no_email_rejected(self, store):
        with pytest.raises(IdentityResolutionFailed):
            IdentityResolver(store).resolve("google", FederatedProfile(name="Nobody"))


class TestResolveExistingIdentity:
    def test_second_sign_in_creates_no_duplicate(self, store):
        resolver = IdentityResolver(store)
        first = resolver.resolve("google", FederatedProfile(email="g@x.com", name="G"))
        second = resolver.resolve("google", FederatedProfile(email="g@x.com", name="G"))
        assert first.id == second.id
        with store.engine.connect() as conn:
            count = conn.exec_driver_sql("SELECT COUNT(*) FROM users WHERE email = 'g@x.com'").scalar()
        assert count == 1

    def test_fills_only_empty_fields(self, store):
        store.create(User(email="g@x.com", name="Local Name"))
        user = IdentityResolver(store).resolve(
            "google", FederatedProfile(email="g@x.com", name="Provider Name", image="https://img/p.png")
        )
        assert user.name == "Local Name"
        assert user.image == "https://img/p.png"

    def test_never_overwrites_non_empty(self, store):
        store.create(User(email="g@x.com", name="Local", image="https://img/local.png"))
        resolver = IdentityResolver(store)
        user = resolver.resolve("github", FederatedProfile(email="g@x.com", name="Remote", image="https://img/r.png"))
        assert (user.name, user.image) == ("Local", "https://img/local.png")

    def test_keeps_password_of_existing_account(self, store, make_user):
        make_user(email="both@x.com")
        IdentityResolver(store).resolve("google", FederatedProfile(email="both@x.com", name="Both"))
        assert store.find_by_email("both@x.com").password_hash is not None

    def test_concurrent_create_falls_back_to_existing(self):
        existing = User(id="u1", email="race@x.com", name=None)
        store = MagicMock(spec=UserStore)
        store.find_by_email.side_effect = [None, existing]
        store.create.side_effect = DuplicateEmailError("race@x.com")
        store.update.return_value = User(id="u1", email="race@x.com", name="Racer")

        user = IdentityResolver(store).resolve("google", FederatedProfile(email="race@x.com", name="Racer"))

        assert user.name == "Racer"
        store.update.assert_called_once_with("race@x.com", name="Racer")
